def _events(sio_client, name):
    return [pkt['args'][0] if pkt['args'] else None
            for pkt in sio_client.get_received('/ws') if pkt['name'] == name]


def _received(sio_client):
    return sio_client.get_received('/ws')


def test_socket_connect_and_join(sio_factory):
    sio_client = sio_factory()
    assert sio_client.is_connected('/ws')
    sio_client.emit('join-room', {'room_key': 'ABCD', 'display_name': 'Alice'}, namespace='/ws')
    received = _received(sio_client)
    names = [pkt['name'] for pkt in received]
    assert 'player-joined' in names
    joined = next(pkt['args'][0] for pkt in received if pkt['name'] == 'player-joined')
    assert [p['display_name'] for p in joined['players']] == ['Alice']
    messages = [pkt['args'][0]['text'] for pkt in received if pkt['name'] == 'message']
    assert messages == ['Alice joined']


def test_full_game_over_socketio(flask_app, sio_factory):
    alice = sio_factory()
    bob = sio_factory()
    alice.emit('join-room', {'room_key': 'R1', 'display_name': 'Alice'}, namespace='/ws')
    bob.emit('join-room', {'room_key': 'R1', 'display_name': 'Bob'}, namespace='/ws')
    joined = _events(alice, 'player-joined')
    assert [p['display_name'] for p in joined[-1]['players']] == ['Alice', 'Bob']
    _received(bob)

    # Bare room key payload is accepted for start-game
    alice.emit('start-game', 'R1', namespace='/ws')
    started = _events(bob, 'game-started')
    assert len(started) == 1
    assert len(started[0]['questions']) == 3
    assert all('correct_index' not in q for q in started[0]['questions'])
    _received(alice)

    alice.emit('answer-question', {'room_key': 'R1', 'question_id': 1, 'answer_index': 1}, namespace='/ws')
    alice_events = _received(alice)
    bob_scores = _events(bob, 'update-score')
    assert len(bob_scores) == 1
    assert sorted((v['display_name'], v['score']) for v in bob_scores[0].values()) == [('Alice', 1), ('Bob', 0)]
    feedback = [pkt['args'][0] for pkt in alice_events if pkt['name'] == 'answer-feedback']
    assert feedback[0]['correct'] is True

    bob.emit('answer-question', {'room_key': 'R1', 'question_id': 1, 'answer_index': 0}, namespace='/ws')
    bob_events = _received(bob)
    assert [pkt['args'][0]['correct'] for pkt in bob_events if pkt['name'] == 'answer-feedback'] == [False]
    assert not any(pkt['name'] == 'update-score' for pkt in bob_events)
    # Private feedback is not broadcast
    assert _events(alice, 'answer-feedback') == []

    alice.disconnect(namespace='/ws')
    left = _events(bob, 'player-left')
    assert [p['display_name'] for p in left[0]['players']] == ['Bob']

    bob.emit('finish-game', {'room_key': 'R1'}, namespace='/ws')
    finished = _events(bob, 'game-finished')
    assert [v['score'] for v in finished[0]['scores'].values()] == [0]

    from quizhub.models import Result
    with flask_app.app_context():
        results = Result.query.all()
        assert [(r.room_key, r.score) for r in results] == [('R1', 0)]


def test_answer_before_start_rejected_privately(sio_factory):
    alice = sio_factory()
    bob = sio_factory()
    alice.emit('join-room', {'room_key': 'R1', 'display_name': 'Alice'}, namespace='/ws')
    bob.emit('join-room', {'room_key': 'R1', 'display_name': 'Bob'}, namespace='/ws')
    _received(alice)
    _received(bob)
    alice.emit('answer-question', {'room_key': 'R1', 'question_id': 1, 'answer_index': 1}, namespace='/ws')
    rejected = _events(alice, 'answer-rejected')
    assert rejected[0]['reason'] == 'not_in_progress'
    assert _received(bob) == []


def test_rooms_are_isolated(sio_factory):
    alice = sio_factory()
    cara = sio_factory()
    alice.emit('join-room', {'room_key': 'R1', 'display_name': 'Alice'}, namespace='/ws')
    cara.emit('join-room', {'room_key': 'R2', 'display_name': 'Cara'}, namespace='/ws')
    _received(cara)
    alice.emit('send-message', {'room_key': 'R1', 'text': 'hi'}, namespace='/ws')
    chat = _events(alice, 'chat-message')
    assert chat[0]['display_name'] == 'Alice'
    assert chat[0]['text'] == 'hi'
    assert _received(cara) == []


def test_missing_room_key_returns_error(sio_factory):
    sio_client = sio_factory()
    _received(sio_client)
    sio_client.emit('join-room', {'display_name': 'Alice'}, namespace='/ws')
    errors = _events(sio_client, 'error')
    assert errors == [{'code': 'bad_request', 'message': 'room_key is required'}]


def test_double_start_surfaces_error_to_requester(sio_factory):
    alice = sio_factory()
    bob = sio_factory()
    alice.emit('join-room', {'room_key': 'R1', 'display_name': 'Alice'}, namespace='/ws')
    bob.emit('join-room', {'room_key': 'R1', 'display_name': 'Bob'}, namespace='/ws')
    alice.emit('start-game', {'room_key': 'R1'}, namespace='/ws')
    _received(alice)
    _received(bob)
    bob.emit('start-game', {'room_key': 'R1'}, namespace='/ws')
    assert _events(bob, 'error')[0]['code'] == 'invalid_transition'
    assert _received(alice) == []
