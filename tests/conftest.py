"""
Pytest fixtures for CricketCore testing.
Provides reusable fixtures for the app, database, clients, test data and
ready-to-score engines.
"""

import os
import sys
from datetime import datetime, timezone

import pytest
import yaml
from flask import g
from werkzeug.security import generate_password_hash

# Add project root to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from app import create_app
from database import db
from database.models import User, Team as DBTeam, Player as DBPlayer
from engine.format_config import resolve_rules
from engine.match import MatchEngine
from engine.match_state import MatchState


# ==================== Engine Fixtures ====================

@pytest.fixture
def make_engine():
    """Factory: a MatchEngine with team "A" batting and the openers in place."""
    def _make(match_format="T20", overs=None, players_per_side=11, allow_flexible_squad=False,
              roster_sizes=None, start=True):
        rules = resolve_rules(match_format, overs, players_per_side, allow_flexible_squad)
        state = MatchState.new("A", "B")
        engine = MatchEngine(state, rules, roster_sizes)
        if start:
            engine.start_match("a1", "a2", "b1")
        return engine
    return _make


@pytest.fixture
def engine(make_engine):
    return make_engine()


# ==================== Application Fixtures ====================

@pytest.fixture(scope="function")
def test_config(tmp_path):
    """Create a temporary config file for testing."""
    config_path = tmp_path / "config.yaml"
    config_data = {
        "app": {
            "secret_key": "test-secret-key-for-testing-only-12345",
        },
        "database": {
            "uri": "sqlite:///:memory:",
        },
        "logging": {
            "level": "DEBUG",
            "file": str(tmp_path / "logs" / "execution.log"),
        },
        "scoring": {
            "strict_versioning": False,
            "last_hour_min_overs": 15,
            "default_players_per_side": 11,
        },
    }

    config_path.write_text(yaml.safe_dump(config_data, sort_keys=False), encoding="utf-8")
    return config_path


@pytest.fixture(scope="function")
def app(test_config, tmp_path, monkeypatch):
    """Create and configure a test Flask application instance."""
    monkeypatch.setenv("CRICKETCORE_CONFIG_PATH", str(test_config))
    test_db_file = tmp_path / "pytest_app.db"
    monkeypatch.setenv("CRICKETCORE_TEST_DB_URI", f"sqlite:///{test_db_file.as_posix()}")

    app = create_app()
    app.config.update({
        "TESTING": True,
        "SECRET_KEY": "test-secret-key",
        "LOGIN_DISABLED": False,
    })

    @app.before_request
    def _reload_login_user():
        # Requests share the fixture's app context; drop the cached Flask-Login user.
        g.pop("_login_user", None)

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope="function")
def client(app):
    """Create a test client for the app."""
    return app.test_client()


# ==================== User Fixtures ====================

def _make_user(email, role, name):
    user = User(
        id=email,
        password_hash=generate_password_hash("Password123!"),
        display_name=name,
        role=role,
        created_at=datetime.now(timezone.utc),
    )
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture(scope="function")
def scorer_user(app):
    return _make_user("scorer@example.com", "Scorer", "Main Scorer")


@pytest.fixture(scope="function")
def second_scorer(app):
    return _make_user("scorer2@example.com", "Scorer", "Backup Scorer")


@pytest.fixture(scope="function")
def admin_user(app):
    return _make_user("admin@example.com", "Administrator", "Admin User")


@pytest.fixture(scope="function")
def viewer_user(app):
    return _make_user("viewer@example.com", "Viewer", "Just Watching")


# ==================== Authentication Helpers ====================

def login_as(app, user):
    """A fresh test client whose session is logged in as `user`."""
    client = app.test_client()
    with client.session_transaction() as sess:
        sess["_user_id"] = user.id
        sess["_fresh"] = True
    return client


@pytest.fixture(scope="function")
def scorer_client(app, scorer_user):
    return login_as(app, scorer_user)


@pytest.fixture(scope="function")
def second_scorer_client(app, second_scorer):
    return login_as(app, second_scorer)


@pytest.fixture(scope="function")
def admin_client(app, admin_user):
    return login_as(app, admin_user)


@pytest.fixture(scope="function")
def viewer_client(app, viewer_user):
    return login_as(app, viewer_user)


# ==================== Team Fixtures ====================

def _make_team(owner, name, short_code, size=11):
    team = DBTeam(name=name, short_code=short_code, user_id=owner.id)
    db.session.add(team)
    db.session.flush()
    for i in range(1, size + 1):
        role = "Bowler" if i > 6 else "Batsman"
        db.session.add(DBPlayer(team_id=team.id, name=f"{short_code} Player {i}", role=role))
    db.session.commit()
    return team


@pytest.fixture(scope="function")
def team_a(app, scorer_user):
    return _make_team(scorer_user, "Riverside Rangers", "RR")


@pytest.fixture(scope="function")
def team_b(app, scorer_user):
    return _make_team(scorer_user, "Hilltop Hawks", "HH")


def player_ids(team):
    return [str(p.id) for p in team.players]


# ==================== Pytest Configuration ====================

def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests"
    )
