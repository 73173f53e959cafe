import os
import logging
import threading
from logging.handlers import RotatingFileHandler

from flask import Flask, jsonify, request
from flask_login import LoginManager

from database import db
from database.models import User, Team as DBTeam, Player as DBPlayer, Match as DBMatch
from database.store import MatchStore, RosterProvider
from routes.auth_routes import register_auth_routes
from routes.match_routes import register_match_routes
from utils.helpers import PROJECT_ROOT, load_config, scoring_settings


def _configure_logging(app, config):
    log_cfg = config.get("logging") or {}
    level = getattr(logging, str(log_cfg.get("level", "INFO")).upper(), logging.INFO)

    log_path = log_cfg.get("file") or os.path.join("logs", "execution.log")
    if not os.path.isabs(log_path):
        log_path = os.path.join(PROJECT_ROOT, log_path)
    os.makedirs(os.path.dirname(log_path), exist_ok=True)

    # Clear existing handlers to avoid duplicates
    for handler in logging.root.handlers[:]:
        logging.root.removeHandler(handler)

    # File handler for persistent logging
    file_handler = RotatingFileHandler(
        log_path,
        maxBytes=int(log_cfg.get("max_bytes", 10 * 1024 * 1024)),
        backupCount=int(log_cfg.get("backup_count", 5)),
        encoding='utf-8'
    )
    file_handler.setLevel(level)

    # Console handler for terminal visibility
    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)

    formatter = logging.Formatter("%(asctime)s - %(levelname)s - %(message)s")
    file_handler.setFormatter(formatter)
    console_handler.setFormatter(formatter)

    logging.basicConfig(level=level, handlers=[file_handler, console_handler])

    # Attach logger to app
    app.logger = logging.getLogger("CricketCore")
    app.logger.setLevel(level)


def create_app():
    # --- Flask setup ---
    app = Flask(__name__)
    config = load_config()

    # --- Secret key setup ---
    secret = None
    try:
        secret = (config.get("app") or {}).get("secret_key", None)
        if not secret or not isinstance(secret, str):
            raise ValueError("Invalid secret_key in config")
    except ValueError as e:
        print(f"[WARN] Could not read secret_key from config.yaml: {e}")

    if not secret:
        secret = os.getenv("FLASK_SECRET_KEY", None)
        if not secret:
            secret = os.urandom(24).hex()
            print("[WARN] Using random Flask SECRET_KEY, sessions won't persist across restarts")

    app.config["SECRET_KEY"] = secret
    app.config["SESSION_COOKIE_SAMESITE"] = "Lax"

    # --- Logging setup (logs to file + terminal) ---
    _configure_logging(app, config)

    # --- Database ---
    db_uri = (
        os.getenv("CRICKETCORE_TEST_DB_URI")
        or (config.get("database") or {}).get("uri")
        or "sqlite:///" + os.path.join(PROJECT_ROOT, "cricketcore.db")
    )
    app.config["SQLALCHEMY_DATABASE_URI"] = db_uri
    app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False
    db.init_app(app)

    with app.app_context():
        db.create_all()

    # --- Flask-Login setup ---
    login_manager = LoginManager(app)

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, user_id)

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({"error": "Login required"}), 401

    # --- Request logging ---
    @app.before_request
    def log_request():
        app.logger.info(f"{request.remote_addr} {request.method} {request.path}")

    # --- Routes ---
    register_auth_routes(app, db=db, DBUser=User)

    store = MatchStore(db, DBMatch, DBTeam)
    roster = RosterProvider(db, DBTeam, DBPlayer)

    register_match_routes(
        app,
        db=db,
        DBMatch=DBMatch,
        DBTeam=DBTeam,
        store=store,
        roster=roster,
        scoring_settings=lambda: scoring_settings(config),
        MATCH_INSTANCES={},
        MATCH_INSTANCES_LOCK=threading.RLock(),
    )

    app.logger.info(f"CricketCore started (database: {db_uri.split('://')[0]})")
    return app


if __name__ == "__main__":
    create_app().run(host="0.0.0.0", port=int(os.getenv("PORT", "7860")))
