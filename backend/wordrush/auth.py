"""Per-player bearer tokens.

A token has the shape ``<player_id>.<secret>``. Only a bcrypt hash of the
secret is stored on the player row, so the id half is a lookup hint and
never proof of identity by itself.
"""

import secrets
from typing import Optional

from flask import current_app

from wordrush import bcrypt, db
from wordrush.models import Player


def issue_token(player: Player) -> str:
    """Create a fresh token for a flushed player and store its hash."""
    secret = secrets.token_urlsafe(24)
    rounds = current_app.config.get('BCRYPT_LOG_ROUNDS')
    player.token_hash = bcrypt.generate_password_hash(secret, rounds).decode('utf-8')
    return f"{player.id}.{secret}"


def parse_authorization(header: Optional[str]) -> Optional[str]:
    if not header:
        return None
    value = header.strip()
    if value.lower().startswith('bearer '):
        value = value[7:].strip()
    return value or None


def resolve_token(token: Optional[str]) -> Optional[Player]:
    if not token or '.' not in token:
        return None
    raw_id, secret = token.split('.', 1)
    try:
        player_id = int(raw_id)
    except ValueError:
        return None
    if player_id <= 0 or not secret:
        return None
    player = db.session.get(Player, player_id)
    if not player or not player.token_hash:
        return None
    if not bcrypt.check_password_hash(player.token_hash, secret):
        return None
    return player


def load_player_from_request(request):
    """Flask-Login request loader."""
    return resolve_token(parse_authorization(request.headers.get('Authorization')))
