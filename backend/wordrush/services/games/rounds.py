"""Submission Coordinator and round completion.

Completion is a conditional update on the round row (``status='active'``
-> ``'completed'``). Whoever gets rowcount 1 won the race and runs the
follow-up work; every other caller gets False and does nothing.
"""

from contextlib import contextmanager
from typing import Dict, Optional

from flask import current_app, has_app_context
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from wordrush import db, socketio
from wordrush.errors import InternalError, ValidationError
from wordrush.models import Answer, Player, Room, Round, utcnow
from wordrush.services.games.rooms import active_round, finish_room

MAX_WORD_LENGTH = 128


@contextmanager
def app_scope(app):
    """Reuse the caller's app context (and session) when it already belongs to ``app``."""
    if has_app_context() and current_app._get_current_object() is app:
        yield
        return
    with app.app_context():
        yield


def _clean_submission(room: Room, answers) -> Dict[str, str]:
    if not isinstance(answers, dict):
        raise ValidationError('answers must be an object of category -> word')
    allowed = set(room.categories or [])
    cleaned = {}
    for category, word in answers.items():
        key = str(category).strip().lower()
        if key not in allowed:
            raise ValidationError(f'Unknown category "{category}"')
        if word is None:
            continue
        if not isinstance(word, str):
            raise ValidationError(f'Answer for "{category}" must be a string')
        text = word.strip()
        if len(text) > MAX_WORD_LENGTH:
            raise ValidationError(f'Answers are limited to {MAX_WORD_LENGTH} characters')
        if text:
            cleaned[key] = text
    return cleaned


def submitted_player_count(round_id: int) -> int:
    return (
        db.session.query(func.count(func.distinct(Answer.player_id)))
        .filter(Answer.round_id == round_id)
        .scalar()
    ) or 0


def submit_answers(room: Room, player: Player, answers) -> bool:
    """Store a player's answer set for the active round.

    Replaces anything the player sent earlier in the same round. Returns
    True when this submission ended the round.
    """
    if player.room_id != room.id:
        raise ValidationError('Player is not in this room')
    if room.status != 'playing':
        raise ValidationError('Game is not in progress')
    rnd = active_round(room)
    if not rnd:
        raise ValidationError('No active round')
    cleaned = _clean_submission(room, answers)

    try:
        # Row-locks the round until commit; 0 rows means completion won the race
        still_active = Round.query.filter(Round.id == rnd.id, Round.status == 'active').update(
            {Round.status: 'active'}, synchronize_session=False
        )
        if still_active != 1:
            db.session.rollback()
            current_app.logger.info(f"[submit-skip] room={room.code} round={rnd.id} player={player.id} round already completed")
            raise ValidationError('No active round')
        Answer.query.filter_by(round_id=rnd.id, player_id=player.id).delete(synchronize_session=False)
        for category, word in cleaned.items():
            db.session.add(Answer(round_id=rnd.id, player_id=player.id, category=category, word=word))
        # Stamp only if still unset: the first submission wins and the value never changes
        first = Round.query.filter(
            Round.id == rnd.id, Round.status == 'active', Round.first_submission_at.is_(None)
        ).update({Round.first_submission_at: utcnow()}, synchronize_session=False) == 1
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.error(f"[submit] room={room.code} round={rnd.id} player={player.id} store error: {exc}")
        raise InternalError('Could not save answers')

    submitted = submitted_player_count(rnd.id)
    total = Player.query.filter_by(room_id=room.id).count()
    current_app.logger.info(
        f"[submit] room={room.code} round={rnd.id} player={player.id} answers={len(cleaned)} submitted={submitted}/{total}"
    )

    if submitted >= total:
        current_app.logger.info(f"[submit] room={room.code} round={rnd.id} all players submitted")
        return complete_round(rnd.id)
    if first and not room.has_timer:
        current_app.logger.info(f"[submit] room={room.code} round={rnd.id} no timer, first submission ends round")
        return complete_round(rnd.id)
    return False


def complete_round(round_id: int, app=None) -> bool:
    """Transition an active round to completed exactly once.

    Returns True if this call performed the transition, False if the round
    was already completed (or missing). Store failures roll back, leave the
    round active for the next sweep or submission, and raise InternalError.
    """
    app = app or current_app._get_current_object()
    try:
        rows = Round.query.filter_by(id=round_id, status='active').update(
            {Round.status: 'completed', Round.ended_at: utcnow()}, synchronize_session=False
        )
        if rows != 1:
            db.session.rollback()
            app.logger.info(f"[round-complete-skip] round={round_id} already completed")
            return False
        rnd = db.session.get(Round, round_id)
        room = db.session.get(Room, rnd.room_id)
        # The completed row is visible to other readers only after this commit
        finished = room.round_number >= room.total_rounds and finish_room(room.id)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        app.logger.error(f"[round-complete] round={round_id} store error: {exc}")
        raise InternalError('Could not complete round')

    app.logger.info(f"[round-complete] room={room.code} round={round_id} number={room.round_number}/{room.total_rounds}")
    if finished:
        app.logger.info(f"[game-finish] room={room.code} finished at round={room.round_number}")
    dispatch_validation(app, round_id)
    return True


def dispatch_validation(app, round_id: int) -> None:
    """Run validation out-of-band; inline under TESTING for determinism."""
    from wordrush.services.games.validation import validate_round

    if app.config.get('TESTING') and not app.config.get('ASYNC_VALIDATION_IN_TESTS'):
        validate_round(app, round_id)
        return
    socketio.start_background_task(validate_round, app, round_id)


def finish_round_manually(room: Room) -> Optional[Round]:
    """Host override: end the active round now."""
    rnd = active_round(room)
    if rnd is None:
        return None
    complete_round(rnd.id)
    return rnd
