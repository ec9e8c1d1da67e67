from datetime import datetime
from typing import List, Optional

from wordrush import db, socketio
from wordrush.errors import InternalError
from wordrush.models import Room, Round, utcnow
from wordrush.services.games.rounds import app_scope, complete_round


def sweep_expired_rounds(app, now: Optional[datetime] = None) -> List[int]:
    """Complete every active round whose first-submission timer has lapsed.

    Safe to run from several processes at once: completion is a
    conditional update, so a round another sweeper (or a submission)
    already finished is skipped. Returns the ids this sweep completed.
    """
    completed = []
    with app_scope(app):
        now = now or utcnow()
        candidates = (
            db.session.query(Round.id, Round.first_submission_at, Room.code, Room.timer_duration)
            .join(Room, Room.id == Round.room_id)
            .filter(Round.status == 'active', Round.first_submission_at.isnot(None))
            .all()
        )
        for round_id, first_at, code, duration in candidates:
            # No timer: the first submission should already have ended it, so it is overdue
            limit = duration or 0
            elapsed = (now - first_at).total_seconds()
            if elapsed < limit:
                continue
            app.logger.info(f"[sweep] room={code} round={round_id} elapsed={elapsed:.1f}s limit={limit}s")
            try:
                if complete_round(round_id, app=app):
                    completed.append(round_id)
            except InternalError:
                # Round stays active; the next tick retries it
                continue
    return completed


class RoundSweeper:
    """Process-wide timer: one background task sweeping active rounds at a fixed cadence."""

    def __init__(self, app, interval: float = 1.0):
        self.app = app
        self.interval = float(interval)
        self._running = False
        self._task = None

    @property
    def running(self) -> bool:
        return self._running

    def tick(self) -> List[int]:
        try:
            return sweep_expired_rounds(self.app)
        except Exception as exc:
            self.app.logger.exception(f"[sweep] tick failed: {exc}")
            return []

    def run_forever(self) -> None:
        self._running = True
        self.app.logger.info(f"[sweep] started interval={self.interval}s")
        from wordrush.services.games.validation import revalidate_pending
        try:
            revalidate_pending(self.app)
        except Exception as exc:
            self.app.logger.exception(f"[sweep] revalidation of pending rounds failed: {exc}")
        while self._running:
            self.tick()
            socketio.sleep(self.interval)
        self.app.logger.info("[sweep] stopped")

    def start(self) -> None:
        if self._running:
            self.app.logger.info("[sweep] already running")
            return
        self._running = True
        self._task = socketio.start_background_task(self.run_forever)

    def stop(self) -> None:
        self._running = False
