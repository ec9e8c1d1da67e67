from typing import List

from wordrush.errors import NotFound, ValidationError
from wordrush.models import Player, Room

UNIQUE_POINTS = 10
SHARED_POINTS = 5


def points_for(is_valid: bool, submitters: int) -> int:
    """10 for a valid word nobody else gave in the category, 5 if shared, 0 if invalid."""
    if not is_valid:
        return 0
    return SHARED_POINTS if submitters > 1 else UNIQUE_POINTS


def award_points(player_id: int, delta: int) -> None:
    """Add ``delta`` to a player's total in the current transaction.

    The increment is done in SQL so concurrent awards to different rows
    never read a stale total. The caller commits.
    """
    if delta < 0:
        raise ValidationError('Scores never decrease')
    if delta == 0:
        return
    rows = Player.query.filter_by(id=player_id).update(
        {Player.score: Player.score + delta}, synchronize_session=False
    )
    if rows != 1:
        raise NotFound(f'Player {player_id} not found')


def leaderboard(room: Room) -> List[Player]:
    return (
        Player.query.filter_by(room_id=room.id)
        .order_by(Player.score.desc(), Player.id.asc())
        .all()
    )
