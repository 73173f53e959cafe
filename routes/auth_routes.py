"""Session login for scorers (JSON)."""

from flask import jsonify, request, session
from flask_login import current_user, login_required, login_user, logout_user
from werkzeug.security import check_password_hash


def register_auth_routes(app, *, db, DBUser):
    @app.route("/api/login", methods=["POST"])
    def login():
        data = request.get_json(silent=True) or {}
        email = str(data.get("email", "")).strip().lower()
        password = data.get("password", "")

        if not email or not password:
            return jsonify({"error": "Email and password required"}), 400

        user = db.session.get(DBUser, email)
        if user is None or not user.password_hash or not check_password_hash(user.password_hash, password):
            app.logger.warning(f"[Auth] Failed login for {email}")
            return jsonify({"error": "Invalid email or password"}), 401

        login_user(user, remember=True)
        session.permanent = True
        app.logger.info(f"Successful login for {email}")
        return jsonify({"id": user.id, "display_name": user.display_name, "role": user.role})

    @app.route("/api/logout", methods=["POST"])
    @login_required
    def logout():
        app.logger.info(f"[Auth] {current_user.id} logged out")
        logout_user()
        return jsonify({"ok": True})

    @app.route("/api/me", methods=["GET"])
    @login_required
    def me():
        return jsonify({
            "id": current_user.id,
            "display_name": current_user.display_name,
            "role": current_user.role,
        })
