from datetime import timedelta

import pytest

from conftest import auth, current_letter
from wordrush import db
from wordrush.errors import ValidationError
from wordrush.models import Answer, Player, Room, Round
from wordrush.services.games import rooms as room_service
from wordrush.services.games import rounds
from wordrush.services.games.rounds import complete_round, submit_answers
from wordrush.services.games.scheduler import sweep_expired_rounds


def _room(code):
    return Room.query.filter_by(code=code).one()


def _player(session):
    return db.session.get(Player, session['playerId'])


def test_complete_round_is_idempotent(client, started_game):
    code, _ = started_game()
    rnd = room_service.active_round(_room(code))
    assert complete_round(rnd.id) is True
    ended_at = db.session.get(Round, rnd.id).ended_at
    assert complete_round(rnd.id) is False
    db.session.expire_all()
    again = db.session.get(Round, rnd.id)
    assert again.status == 'completed'
    assert again.ended_at == ended_at


def test_all_submitted_completes_before_timer(flask_app, client, started_game):
    code, players = started_game(timer=10)
    room = _room(code)
    letter = current_letter(client, code)
    results = [submit_answers(room, _player(p), {'city': f'{letter}ay{i}'}) for i, p in enumerate(players)]
    assert results == [False, False, True]
    rnd = room_service.current_round(room)
    assert rnd.status == 'completed'
    # A later sweep finds nothing left to complete
    assert sweep_expired_rounds(flask_app, now=rnd.first_submission_at + timedelta(seconds=30)) == []
    assert Round.query.filter_by(room_id=room.id, status='active').count() == 0


def test_first_submission_ends_round_without_timer(client, started_game):
    code, players = started_game(timer=0)
    room = _room(code)
    letter = current_letter(client, code)
    assert submit_answers(room, _player(players[1]), {'city': f'{letter}ay'}) is True
    assert room_service.current_round(room).status == 'completed'


def test_first_submission_timestamp_is_set_once(client, started_game):
    code, players = started_game(timer=10)
    room = _room(code)
    letter = current_letter(client, code)
    submit_answers(room, _player(players[0]), {'city': f'{letter}ay'})
    first = room_service.active_round(room).first_submission_at
    assert first is not None
    submit_answers(room, _player(players[0]), {'city': f'{letter}ee'})
    submit_answers(room, _player(players[1]), {'city': f'{letter}oo'})
    db.session.expire_all()
    assert room_service.active_round(room).first_submission_at == first


def test_resubmission_replaces_previous_answers(client, started_game):
    code, players = started_game(timer=10)
    room = _room(code)
    letter = current_letter(client, code)
    ann = _player(players[0])
    submit_answers(room, ann, {'city': f'{letter}one', 'animal': f'{letter}cat'})
    submit_answers(room, ann, {'city': f'{letter}two'})
    rnd = room_service.active_round(room)
    stored = Answer.query.filter_by(round_id=rnd.id, player_id=ann.id).all()
    assert [(a.category, a.word) for a in stored] == [('city', f'{letter}two')]


def test_blank_answers_are_not_stored(client, started_game):
    code, players = started_game(timer=10)
    room = _room(code)
    letter = current_letter(client, code)
    submit_answers(room, _player(players[0]), {'city': '   ', 'animal': f' {letter}cat '})
    stored = Answer.query.filter_by(player_id=players[0]['playerId']).all()
    assert [(a.category, a.word) for a in stored] == [('animal', f'{letter}cat')]


def test_submit_after_completion_is_rejected(client, started_game):
    code, players = started_game(timer=0)
    room = _room(code)
    letter = current_letter(client, code)
    submit_answers(room, _player(players[0]), {'city': f'{letter}ay'})
    with pytest.raises(ValidationError):
        submit_answers(room, _player(players[1]), {'city': f'{letter}ee'})


def test_only_one_active_round_per_room(client, started_game):
    code, _ = started_game()
    room = _room(code)
    with pytest.raises(ValidationError):
        room_service.start_round(room)
    assert Round.query.filter_by(room_id=room.id, status='active').count() == 1


def test_used_letters_never_repeat(flask_app, client, started_game):
    flask_app.config['LETTER_ALPHABET'] = 'ABC'
    code, (host, _, _) = started_game(rounds=5)
    room = _room(code)
    for _ in range(2):
        client.post(f'/api/rooms/{code}/round/finish', headers=auth(host['token']))
        client.post(f'/api/rooms/{code}/round/next')
    db.session.expire_all()
    assert sorted(room.used_letters) == ['A', 'B', 'C']
    assert room.round_number == 3

    # Alphabet exhausted: the room finishes instead of opening a round
    client.post(f'/api/rooms/{code}/round/finish', headers=auth(host['token']))
    assert room_service.next_round(room) is None
    db.session.expire_all()
    assert room.status == 'finished'
    assert len(room.used_letters) == len(set(room.used_letters)) == 3


def test_start_game_resets_round_counter(client, make_room):
    host = make_room('Ann')
    room = _room(host['code'])
    room.round_number = 4
    db.session.commit()
    room_service.start_game(room)
    db.session.expire_all()
    assert room.round_number == 1
    assert room.status == 'playing'


def test_resubmission_after_completion_keeps_scored_answers(monkeypatch, client, started_game):
    code, players = started_game(timer=10)
    room = _room(code)
    letter = current_letter(client, code)
    ann = _player(players[0])
    submit_answers(room, ann, {'city': f'{letter}one'})
    real_active_round = rounds.active_round

    def completed_meanwhile(r):
        # The sweep completes and scores the round right after it was looked up
        found = real_active_round(r)
        complete_round(found.id)
        return found

    monkeypatch.setattr(rounds, 'active_round', completed_meanwhile)
    with pytest.raises(ValidationError):
        submit_answers(room, ann, {'city': f'{letter}two'})

    db.session.expire_all()
    stored = Answer.query.filter_by(player_id=ann.id).all()
    assert [(a.word, a.is_valid, a.points) for a in stored] == [(f'{letter}one', True, 10)]
    assert _player(players[0]).score == 10


def test_completion_hands_validation_to_background_task(flask_app, monkeypatch, client, started_game):
    flask_app.config['ASYNC_VALIDATION_IN_TESTS'] = True
    tasks = []
    monkeypatch.setattr(rounds.socketio, 'start_background_task', lambda fn, *args: tasks.append((fn, args)))
    code, players = started_game(timer=0)
    room = _room(code)
    letter = current_letter(client, code)

    assert submit_answers(room, _player(players[0]), {'city': f'{letter}ay'}) is True
    rnd = room_service.current_round(room)
    assert rnd.status == 'completed'
    assert rnd.validated_at is None
    assert Answer.query.filter_by(round_id=rnd.id).one().is_valid is None
    assert _player(players[0]).score == 0

    assert len(tasks) == 1
    task, args = tasks[0]
    assert args == (flask_app, rnd.id)
    task(*args)
    db.session.expire_all()
    assert db.session.get(Round, rnd.id).validated_at is not None
    assert _player(players[0]).score == 10
