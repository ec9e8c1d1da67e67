"""Voting Ledger: post-round accept/reject votes on peer answers.

The live majority (reject votes strictly above half the room) and the
persisted ``community_rejected`` marker are both display signals; neither
changes awarded points.
"""

from typing import Dict, Iterable, Optional

from flask import current_app
from sqlalchemy import case, func
from sqlalchemy.exc import IntegrityError

from wordrush import db
from wordrush.errors import Forbidden, NotFound, ValidationError
from wordrush.models import Answer, Player, Round, Vote, utcnow


def majority_rejects(reject_votes: int, player_count: int) -> bool:
    return reject_votes * 2 > player_count


def reject_count(answer_id: int) -> int:
    return Vote.query.filter_by(answer_id=answer_id, accepted=False).count()


def is_rejected(answer: Answer, player_count: Optional[int] = None) -> bool:
    if answer.community_rejected:
        return True
    if player_count is None:
        rnd = db.session.get(Round, answer.round_id)
        player_count = Player.query.filter_by(room_id=rnd.room_id).count()
    return majority_rejects(reject_count(answer.id), player_count)


def _upsert_vote(answer_id: int, player_id: int, accepted: bool) -> Vote:
    vote = Vote.query.filter_by(answer_id=answer_id, player_id=player_id).first()
    if vote is None:
        vote = Vote(answer_id=answer_id, player_id=player_id, accepted=accepted, created_at=utcnow())
        db.session.add(vote)
        try:
            db.session.commit()
            return vote
        except IntegrityError:
            # A concurrent request inserted the same (answer, player) first
            db.session.rollback()
            vote = Vote.query.filter_by(answer_id=answer_id, player_id=player_id).one()
    vote.accepted = accepted
    vote.created_at = utcnow()
    db.session.commit()
    return vote


def cast_vote(answer_id: int, voter: Player, accepted, room=None) -> bool:
    """Record or replace ``voter``'s vote on an answer; returns the rejected flag."""
    if not isinstance(accepted, bool):
        raise ValidationError('accepted must be true or false')
    answer = db.session.get(Answer, answer_id)
    if answer is None:
        raise NotFound('Answer not found')
    rnd = db.session.get(Round, answer.round_id)
    if room is not None and rnd.room_id != room.id:
        raise NotFound('Answer not found')
    if voter.room_id != rnd.room_id:
        raise Forbidden('You are not a player in this room')
    if rnd.status != 'completed':
        raise ValidationError('Voting opens when the round is over')
    if answer.player_id == voter.id:
        raise ValidationError('You cannot vote on your own answer')

    _upsert_vote(answer.id, voter.id, accepted)
    player_count = Player.query.filter_by(room_id=rnd.room_id).count()
    rejected = is_rejected(answer, player_count)
    current_app.logger.info(
        f"[vote] answer={answer.id} voter={voter.id} accepted={accepted} rejected={rejected}"
    )
    return rejected


def vote_summary(answers: Iterable[Answer], player_count: int) -> Dict[int, dict]:
    """Accept/reject tallies and the rejected flag for each answer."""
    answers = list(answers)
    if not answers:
        return {}
    rows = (
        db.session.query(
            Vote.answer_id,
            func.sum(case((Vote.accepted.is_(True), 1), else_=0)),
            func.sum(case((Vote.accepted.is_(False), 1), else_=0)),
        )
        .filter(Vote.answer_id.in_([a.id for a in answers]))
        .group_by(Vote.answer_id)
        .all()
    )
    tallies = {answer_id: (int(acc or 0), int(rej or 0)) for answer_id, acc, rej in rows}
    summary = {}
    for ans in answers:
        accepts, rejects = tallies.get(ans.id, (0, 0))
        summary[ans.id] = {
            'accepts': accepts,
            'rejects': rejects,
            'rejected': ans.community_rejected or majority_rejects(rejects, player_count),
        }
    return summary


def set_community_rejected(answer_id: int, rejected: bool = True) -> Answer:
    """Moderation marker, independent of the live vote count."""
    answer = db.session.get(Answer, answer_id)
    if answer is None:
        raise NotFound('Answer not found')
    answer.community_rejected = rejected
    db.session.commit()
    current_app.logger.info(f"[moderation] answer={answer.id} community_rejected={rejected}")
    return answer
