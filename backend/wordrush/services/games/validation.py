from collections import Counter
from typing import Dict, List, Tuple

from sqlalchemy.exc import SQLAlchemyError

from wordrush import db
from wordrush.models import Answer, Room, Round, utcnow
from wordrush.services.games.judges import FallbackJudge, JudgeError, Verdict, judge_key, select_judge
from wordrush.services.games.rounds import app_scope
from wordrush.services.games.scoring import award_points, points_for


def unique_pairs(answers: List[Answer]) -> Tuple[Counter, List[Tuple[str, str]]]:
    """Count submitters per (category, lower-cased word) and list each pair once."""
    counts = Counter((a.category, a.word.strip().lower()) for a in answers)
    return counts, sorted(counts)


def judge_batch(app, round_id: int, letter: str, categories: List[str], pairs, judge=None) -> Tuple[Dict[str, Verdict], str]:
    """Ask the primary judge once; on any failure judge the whole batch by fallback."""
    primary = judge or select_judge(app.config)
    fallback = FallbackJudge()
    if isinstance(primary, FallbackJudge):
        return fallback.judge(letter, categories, pairs), fallback.name
    try:
        return primary.judge(letter, categories, pairs), primary.name
    except JudgeError as exc:
        app.logger.warning(f"[judge-fallback] round={round_id} reason={exc}")
    except Exception as exc:
        app.logger.exception(f"[judge-fallback] round={round_id} unexpected judge error: {exc}")
    return fallback.judge(letter, categories, pairs), fallback.name


def validate_round(app, round_id: int, judge=None) -> bool:
    """Judge and score a completed round once.

    The judge is called outside the write transaction. Scores are then
    written together with a conditional claim on ``round.validated_at`` so
    a second run for the same round awards nothing. Returns True when this
    call scored the round.
    """
    with app_scope(app):
        rnd = db.session.get(Round, round_id)
        if rnd is None or rnd.status != 'completed' or rnd.validated_at is not None:
            app.logger.info(f"[validate-skip] round={round_id} not pending validation")
            return False
        room = db.session.get(Room, rnd.room_id)
        letter = rnd.letter
        categories = list(room.categories or [])
        answers = Answer.query.filter_by(round_id=round_id).order_by(Answer.id).all()
        counts, pairs = unique_pairs(answers)

        verdicts, source = judge_batch(app, round_id, letter, categories, pairs, judge=judge)

        try:
            claimed = Round.query.filter(
                Round.id == round_id, Round.status == 'completed', Round.validated_at.is_(None)
            ).update({Round.validated_at: utcnow()}, synchronize_session=False)
            if claimed != 1:
                db.session.rollback()
                app.logger.info(f"[validate-skip] round={round_id} already validated")
                return False
            awarded = 0
            for ans in answers:
                word = ans.word.strip().lower()
                verdict = verdicts[judge_key(ans.category, word)]
                points = points_for(verdict.is_valid, counts[(ans.category, word)])
                ans.is_valid = verdict.is_valid
                ans.points = points
                ans.validation_reason = verdict.reason
                if points:
                    award_points(ans.player_id, points)
                    awarded += points
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            app.logger.error(f"[validate] round={round_id} store error: {exc}")
            return False

        app.logger.info(
            f"[validate] room={room.code} round={round_id} letter={letter} judge={source} "
            f"answers={len(answers)} unique={len(pairs)} points={awarded}"
        )
        return True


def revalidate_pending(app, judge=None) -> List[int]:
    """Score completed rounds that never got validated (e.g. after a crash)."""
    with app_scope(app):
        ids = [r.id for r in Round.query.filter(Round.status == 'completed', Round.validated_at.is_(None)).all()]
    return [rid for rid in ids if validate_round(app, rid, judge=judge)]
