from datetime import datetime
from flask_login import UserMixin
from sqlalchemy.orm import relationship, synonym
from database import db
import uuid

class User(UserMixin, db.Model):
    """User account

    NOTE: id is the email string.  ``role`` decides what the user may do on
    a live match: Scorer, Administrator, Umpire or Viewer.
    """
    __tablename__ = 'users'

    id = db.Column(db.String(120), primary_key=True)  # Email as ID
    email = synonym('id')
    password_hash = db.Column(db.String(200))
    display_name = db.Column(db.String(100))
    role = db.Column(db.String(20), default='Scorer', nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    teams = relationship('Team', backref='owner', lazy=True, cascade="all, delete-orphan")
    matches = relationship('Match', backref='user', lazy=True, cascade="all, delete-orphan")

    @property
    def is_admin(self):
        return self.role == 'Administrator'

class Team(db.Model):
    """Cricket Team"""
    __tablename__ = 'teams'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(120), db.ForeignKey('users.id'), nullable=False, index=True)
    name = db.Column(db.String(100), nullable=False)
    short_code = db.Column(db.String(10), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    players = relationship('Player', backref='team', lazy=True, cascade="all, delete-orphan",
                           order_by='Player.id')

class Player(db.Model):
    """Roster entry; all figures are derived from scored matches."""
    __tablename__ = 'players'

    id = db.Column(db.Integer, primary_key=True)
    team_id = db.Column(db.Integer, db.ForeignKey('teams.id'), nullable=False, index=True)
    name = db.Column(db.String(100), nullable=False)
    role = db.Column(db.String(50))  # Batsman, Bowler, All-rounder, Wicketkeeper

    def to_dict(self):
        return {"id": str(self.id), "name": self.name, "role": self.role}

class Match(db.Model):
    """Live or finished scored match"""
    __tablename__ = 'matches'

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = db.Column(db.String(120), db.ForeignKey('users.id'))

    team_a_id = db.Column(db.Integer, db.ForeignKey('teams.id'), nullable=False, index=True)
    team_b_id = db.Column(db.Integer, db.ForeignKey('teams.id'), nullable=False, index=True)
    winner_team_id = db.Column(db.Integer, db.ForeignKey('teams.id'), nullable=True, index=True)

    # Match Details
    venue = db.Column(db.String(100))
    date = db.Column(db.DateTime, default=datetime.utcnow)
    status = db.Column(db.String(20), default='Scheduled', nullable=False)  # Scheduled, Live, Completed
    result_description = db.Column(db.String(200))  # e.g., "Rangers won by 4 wicket(s)"

    # Scoreboard strings, e.g. "145/6 (20.0)"
    team_a_score = db.Column(db.String(40))
    team_b_score = db.Column(db.String(40))

    # Margin of Victory
    margin_type = db.Column(db.String(10))  # 'runs', 'wickets', 'innings' or 'tie'
    margin_value = db.Column(db.Integer)

    # Match Format
    match_format = db.Column(db.String(20), default='T20')
    overs_per_side = db.Column(db.Integer, nullable=True)
    players_per_side = db.Column(db.Integer, default=11)
    allow_flexible_squad = db.Column(db.Boolean, default=False)

    # Live state
    saved_state = db.Column(db.JSON)
    active_scorer_id = db.Column(db.String(120), nullable=True)
    state_version = db.Column(db.Integer, default=0)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Duplicate detection
    game_id = db.Column(db.String(120), index=True)
    is_duplicate = db.Column(db.Boolean, default=False, nullable=False)
    primary_match_id = db.Column(db.String(36), nullable=True)
    duplicate_reason = db.Column(db.String(200))

    team_a = relationship('Team', foreign_keys=[team_a_id])
    team_b = relationship('Team', foreign_keys=[team_b_id])

    def to_dict(self):
        return {
            "id": self.id,
            "team_a_id": str(self.team_a_id),
            "team_b_id": str(self.team_b_id),
            "match_format": self.match_format,
            "overs_per_side": self.overs_per_side,
            "players_per_side": self.players_per_side,
            "allow_flexible_squad": self.allow_flexible_squad,
            "venue": self.venue,
            "date": self.date.isoformat() if self.date else None,
            "status": self.status,
            "team_a_score": self.team_a_score,
            "team_b_score": self.team_b_score,
            "result_description": self.result_description,
            "winner_team_id": str(self.winner_team_id) if self.winner_team_id else None,
            "margin_type": self.margin_type,
            "margin_value": self.margin_value,
            "active_scorer_id": self.active_scorer_id,
            "state_version": self.state_version,
            "game_id": self.game_id,
            "is_duplicate": self.is_duplicate,
            "primary_match_id": self.primary_match_id,
        }
