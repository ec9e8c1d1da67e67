import pytest

from wordrush import db
from wordrush.errors import NotFound, ValidationError
from wordrush.models import Answer, Player, Room, Vote
from wordrush.services.games import rooms as room_service
from wordrush.services.games.rounds import finish_round_manually, submit_answers
from wordrush.services.games.voting import (
    cast_vote,
    is_rejected,
    majority_rejects,
    set_community_rejected,
    vote_summary,
)


@pytest.fixture()
def voted_round(flask_app, client, make_room, join):
    """Four-player room with one completed round holding Ann's answer."""
    flask_app.config['LETTER_ALPHABET'] = 'K'
    host = make_room('Ann', categories=['city'])
    for name in ('Bob', 'Cara', 'Dan'):
        join(host['code'], name)
    room = Room.query.filter_by(code=host['code']).one()
    room_service.start_game(room)
    players = {p.name: p for p in Player.query.filter_by(room_id=room.id).all()}
    submit_answers(room, players['Ann'], {'city': 'Krakow'})
    finish_round_manually(room)
    answer = Answer.query.filter_by(player_id=players['Ann'].id).one()
    return room, players, answer


def test_majority_threshold():
    assert majority_rejects(3, 4) is True
    assert majority_rejects(2, 4) is False
    assert majority_rejects(2, 3) is True
    assert majority_rejects(0, 0) is False


def test_two_of_four_rejects_is_not_enough(voted_round):
    room, players, answer = voted_round
    assert cast_vote(answer.id, players['Bob'], False) is False
    assert cast_vote(answer.id, players['Cara'], False) is False
    assert is_rejected(answer) is False
    assert cast_vote(answer.id, players['Dan'], False) is True
    assert is_rejected(answer) is True


def test_later_vote_overwrites_earlier(voted_round):
    room, players, answer = voted_round
    cast_vote(answer.id, players['Bob'], False)
    cast_vote(answer.id, players['Bob'], True)
    votes = Vote.query.filter_by(answer_id=answer.id, player_id=players['Bob'].id).all()
    assert len(votes) == 1
    assert votes[0].accepted is True
    assert vote_summary([answer], 4)[answer.id] == {'accepts': 1, 'rejects': 0, 'rejected': False}


def test_voting_does_not_change_points(voted_round):
    room, players, answer = voted_round
    points_before = answer.points
    score_before = players['Ann'].score
    for name in ('Bob', 'Cara', 'Dan'):
        cast_vote(answer.id, players[name], False)
    db.session.expire_all()
    assert answer.points == points_before == 10
    assert players['Ann'].score == score_before == 10


def test_moderation_flag_is_separate_from_votes(voted_round):
    room, players, answer = voted_round
    set_community_rejected(answer.id, True)
    assert is_rejected(answer, player_count=4) is True
    assert vote_summary([answer], 4)[answer.id]['rejected'] is True
    set_community_rejected(answer.id, False)
    assert is_rejected(answer, player_count=4) is False
    with pytest.raises(NotFound):
        set_community_rejected(9999)


def test_vote_rules(voted_round):
    room, players, answer = voted_round
    with pytest.raises(ValidationError):
        cast_vote(answer.id, players['Ann'], False)
    with pytest.raises(ValidationError):
        cast_vote(answer.id, players['Bob'], None)
    with pytest.raises(NotFound):
        cast_vote(9999, players['Bob'], True)


def test_no_voting_while_round_is_active(flask_app, voted_round):
    room, players, _ = voted_round
    flask_app.config['LETTER_ALPHABET'] = 'KL'
    assert room_service.next_round(room).letter == 'L'
    submit_answers(room, players['Bob'], {'city': 'Lodz'})
    live = Answer.query.filter_by(player_id=players['Bob'].id).one()
    with pytest.raises(ValidationError):
        cast_vote(live.id, players['Cara'], False)
