"""Room Manager: room configuration, membership and round creation."""

import random
from typing import List, Optional, Tuple

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from wordrush import db
from wordrush.auth import issue_token
from wordrush.errors import Conflict, NotFound, ValidationError
from wordrush.models import Answer, Player, Room, Round, utcnow

MIN_ROUNDS, MAX_ROUNDS = 1, 20
MIN_TIMER, MAX_TIMER = 0, 60
MAX_CATEGORIES = 12
MAX_NAME_LENGTH = 64
MAX_CATEGORY_LENGTH = 64

UNSET = object()


def default_categories() -> List[str]:
    raw = current_app.config.get('DEFAULT_CATEGORIES', '')
    if isinstance(raw, (list, tuple)):
        return list(raw)
    return [c.strip() for c in str(raw).split(',') if c.strip()]


def alphabet() -> str:
    return str(current_app.config.get('LETTER_ALPHABET', 'ABCDEFGHIJKLMNOPRSTUWZ')).upper()


def parse_total_rounds(value) -> int:
    try:
        total = int(value)
    except (TypeError, ValueError):
        raise ValidationError('totalRounds must be an integer')
    if isinstance(value, bool) or not MIN_ROUNDS <= total <= MAX_ROUNDS:
        raise ValidationError(f'totalRounds must be between {MIN_ROUNDS} and {MAX_ROUNDS}')
    return total


def parse_timer_duration(value) -> Optional[int]:
    if value is None:
        return None
    try:
        seconds = int(value)
    except (TypeError, ValueError):
        raise ValidationError('timerDuration must be an integer')
    if isinstance(value, bool) or not MIN_TIMER <= seconds <= MAX_TIMER:
        raise ValidationError(f'timerDuration must be between {MIN_TIMER} and {MAX_TIMER}')
    return seconds


def parse_categories(value) -> List[str]:
    if not isinstance(value, list) or not value:
        raise ValidationError('categories must be a non-empty list')
    cleaned = []
    for item in value:
        if not isinstance(item, str) or not item.strip():
            raise ValidationError('categories must be non-empty strings')
        name = item.strip().lower()
        if len(name) > MAX_CATEGORY_LENGTH:
            raise ValidationError(f'category names are limited to {MAX_CATEGORY_LENGTH} characters')
        # ':' separates category from word in judge keys
        if ':' in name:
            raise ValidationError('category names cannot contain ":"')
        if name not in cleaned:
            cleaned.append(name)
    if len(cleaned) > MAX_CATEGORIES:
        raise ValidationError(f'At most {MAX_CATEGORIES} categories are allowed')
    return cleaned


def parse_player_name(value) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError('playerName is required')
    name = value.strip()
    if len(name) > MAX_NAME_LENGTH:
        raise ValidationError(f'playerName is limited to {MAX_NAME_LENGTH} characters')
    return name


def get_room_by_code(code: str) -> Room:
    room = Room.query.filter_by(code=(code or '').strip().upper()).first()
    if not room:
        raise NotFound('Room not found')
    return room


def _add_player(room: Room, name: str, is_host: bool) -> Tuple[Player, str]:
    clash = Player.query.filter(
        Player.room_id == room.id, func.lower(Player.name) == name.lower()
    ).first()
    if clash:
        raise Conflict(f'Name "{name}" is already taken in this room')
    player = Player(room_id=room.id, name=name, is_host=is_host, score=0)
    db.session.add(player)
    try:
        db.session.flush()
    except IntegrityError:
        db.session.rollback()
        raise Conflict(f'Name "{name}" is already taken in this room')
    token = issue_token(player)
    return player, token


def create_room(host_name, total_rounds=None, categories=None, timer_duration=UNSET) -> Tuple[Room, Player, str]:
    """Create a waiting room with its host player.

    ``timer_duration`` left unset takes the configured default; an explicit
    ``None`` or 0 disables the timer.
    """
    name = parse_player_name(host_name)
    cfg = current_app.config
    total = parse_total_rounds(total_rounds if total_rounds is not None else cfg.get('DEFAULT_TOTAL_ROUNDS', 5))
    if timer_duration is UNSET:
        timer = parse_timer_duration(cfg.get('DEFAULT_TIMER_DURATION_SEC', 10))
    else:
        timer = parse_timer_duration(timer_duration)
    cats = parse_categories(categories) if categories is not None else default_categories()

    room = Room(status='waiting', round_number=0, total_rounds=total,
                timer_duration=timer, categories=cats, used_letters=[])
    db.session.add(room)
    db.session.flush()
    player, token = _add_player(room, name, is_host=True)
    db.session.commit()
    current_app.logger.info(f"[room-create] room={room.code} host={player.id} rounds={total} timer={timer}")
    return room, player, token


def join_room(code, player_name) -> Tuple[Room, Player, str]:
    name = parse_player_name(player_name)
    room = get_room_by_code(code)
    if room.status == 'finished':
        raise ValidationError('This game has already finished')
    player, token = _add_player(room, name, is_host=False)
    db.session.commit()
    current_app.logger.info(f"[room-join] room={room.code} player={player.id} name={name!r}")
    return room, player, token


def _require_waiting(room: Room) -> None:
    if room.status != 'waiting':
        raise ValidationError('Settings can only be changed before the game starts')


def update_categories(room: Room, categories) -> Room:
    _require_waiting(room)
    room.categories = parse_categories(categories)
    db.session.commit()
    return room


def update_settings(room: Room, total_rounds=UNSET, timer_duration=UNSET) -> Room:
    _require_waiting(room)
    if total_rounds is not UNSET:
        room.total_rounds = parse_total_rounds(total_rounds)
    if timer_duration is not UNSET:
        room.timer_duration = parse_timer_duration(timer_duration)
    db.session.commit()
    return room


def current_round(room: Room) -> Optional[Round]:
    return Round.query.filter_by(room_id=room.id).order_by(Round.id.desc()).first()


def active_round(room: Room) -> Optional[Round]:
    return Round.query.filter_by(room_id=room.id, status='active').order_by(Round.id.desc()).first()


def finish_room(room_id: int) -> bool:
    """Move a room to finished. Returns False when it already was."""
    rows = Room.query.filter(Room.id == room_id, Room.status != 'finished').update(
        {Room.status: 'finished'}, synchronize_session=False
    )
    return rows == 1


def start_game(room: Room) -> Optional[Round]:
    """Start a waiting room: reset the round counter, then open round one."""
    if room.status != 'waiting':
        raise ValidationError('Game has already started or is finished')
    rows = Room.query.filter_by(id=room.id, status='waiting').update(
        {Room.status: 'playing', Room.round_number: 0, Room.used_letters: []},
        synchronize_session=False,
    )
    db.session.commit()
    if rows != 1:
        raise ValidationError('Game has already started or is finished')
    db.session.refresh(room)
    current_app.logger.info(f"[game-start] room={room.code} players={len(room.players)}")
    return start_round(room)


def start_round(room: Room) -> Optional[Round]:
    """Draw an unused letter and open a new active round.

    Returns None (and finishes the room) when the alphabet is exhausted.
    The room row is advanced with a conditional update on its round
    counter so two concurrent callers cannot both open a round.
    """
    db.session.refresh(room)
    if room.status == 'finished':
        raise ValidationError('Game is finished')
    if room.status != 'playing':
        raise ValidationError('Game has not started')
    if active_round(room):
        raise ValidationError('A round is still in progress')
    if room.round_number >= room.total_rounds:
        finish_room(room.id)
        db.session.commit()
        raise ValidationError('Game is finished')

    used = list(room.used_letters or [])
    available = [letter for letter in alphabet() if letter not in used]
    if not available:
        finish_room(room.id)
        db.session.commit()
        current_app.logger.info(f"[game-finish] room={room.code} no letters left")
        return None

    letter = random.choice(available)
    expected = room.round_number
    rows = Room.query.filter_by(id=room.id, round_number=expected, status='playing').update(
        {Room.round_number: expected + 1, Room.used_letters: used + [letter]},
        synchronize_session=False,
    )
    if rows != 1:
        db.session.rollback()
        raise ValidationError('A round is already being started')
    new_round = Round(room_id=room.id, letter=letter, status='active', started_at=utcnow())
    db.session.add(new_round)
    db.session.commit()
    db.session.refresh(room)
    current_app.logger.info(f"[round-start] room={room.code} round={new_round.id} number={room.round_number} letter={letter}")
    return new_round


def next_round(room: Room) -> Optional[Round]:
    db.session.refresh(room)
    if room.status == 'finished':
        raise ValidationError('Game is finished')
    return start_round(room)


def room_state(room: Room, viewer: Optional[Player] = None) -> dict:
    """Poll payload: room, leaderboard, latest round and visible answers."""
    from wordrush.services.games.scoring import leaderboard
    from wordrush.services.games.voting import vote_summary

    payload = {
        'room': room.to_dict(),
        'players': [p.to_dict() for p in leaderboard(room)],
        'currentRound': None,
    }
    rnd = current_round(room)
    if not rnd:
        return payload
    payload['currentRound'] = rnd.to_dict(timer_duration=room.timer_duration)
    if viewer is not None and viewer.room_id == room.id:
        mine = Answer.query.filter_by(round_id=rnd.id, player_id=viewer.id).order_by(Answer.id).all()
        payload['myAnswers'] = [a.to_dict() for a in mine]
    if rnd.status == 'completed':
        answers = Answer.query.filter_by(round_id=rnd.id).order_by(Answer.id).all()
        payload['allAnswers'] = [a.to_dict() for a in answers]
        payload['votes'] = {str(k): v for k, v in vote_summary(answers, len(room.players)).items()}
    return payload
