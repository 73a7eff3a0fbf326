from helpers import create_room, join_room, names, payloads, two_player_room
from rockpaperbeer import socketio


def test_socket_connect_reports_player_id(flask_app):
    test_client = socketio.test_client(flask_app)
    assert test_client.is_connected()
    received = test_client.get_received()
    connected = payloads(received, 'connected')
    assert connected and connected[0]['playerId']
    test_client.disconnect()


def test_create_room_replies_to_creator_only(connect, services):
    alice, bystander = connect(), connect()
    alice.emit('createRoom', {'playerName': 'Alice', 'avatar': '<svg/>'})

    received = alice.get_received()
    assert names(received) == ['roomCreated', 'roomUpdated']
    room = payloads(received, 'roomCreated')[0]['room']
    assert room['gamePhase'] == 'waiting'
    assert room['currentRound'] == 0
    assert [p['name'] for p in room['players']] == ['Alice']
    assert room['players'][0]['avatar'] == '<svg/>'
    assert len(room['code']) == 8
    assert services.store.get(room['id']) is not None
    assert bystander.get_received() == []


def test_create_room_validates_name(connect, services):
    alice = connect()
    alice.emit('createRoom', {'playerName': ''})
    alice.emit('createRoom', {'playerName': 'x' * 21})
    alice.emit('createRoom', {})
    alice.emit('createRoom', 'Alice')

    received = alice.get_received()
    assert names(received) == ['error'] * 4
    assert all('playerName' in e['message'] for e in payloads(received, 'error')[:3])
    assert services.store.all() == []


def test_get_room(connect):
    alice = connect()
    room = create_room(alice)
    alice.emit('getRoom', {'roomId': room['id']})
    assert payloads(alice.get_received(), 'roomData')[0]['room']['id'] == room['id']

    alice.emit('getRoom', {'roomId': 'missing'})
    assert payloads(alice.get_received(), 'error') == [{'message': 'Room not found'}]


def test_join_by_code_is_case_insensitive(connect):
    alice, bob = connect(), connect()
    room = create_room(alice)

    bob.emit('joinRoom', {'roomCode': room['code'].lower(), 'playerName': 'Bob'})

    for player in (alice, bob):
        updated = payloads(player.get_received(), 'roomUpdated')
        assert len(updated) == 1
        assert [p['name'] for p in updated[0]['room']['players']] == ['Alice', 'Bob']
        assert updated[0]['room']['gamePhase'] == 'waiting'


def test_join_by_id(connect):
    alice, bob = connect(), connect()
    room = create_room(alice)
    joined = join_room(bob, room)
    assert joined['id'] == room['id']
    assert len(joined['players']) == 2


def test_join_errors(connect):
    alice, bob, room = two_player_room(connect)
    carol = connect()

    carol.emit('joinRoom', {'roomCode': 'ZZZZZZZZ', 'playerName': 'Carol'})
    carol.emit('joinRoom', {'roomId': 'missing', 'playerName': 'Carol'})
    carol.emit('joinRoom', {'playerName': 'Carol'})
    carol.emit('joinRoom', {'roomId': room['id'], 'playerName': 'Carol'})

    messages = [e['message'] for e in payloads(carol.get_received(), 'error')]
    assert messages[0] == 'Room not found with that code'
    assert messages[1] == 'Room not found'
    assert 'Room ID or code required' in messages[2]
    assert messages[3] == 'Room is full'
    # nobody else hears about failed joins
    assert alice.get_received() == []
    assert bob.get_received() == []


def test_third_join_leaves_room_unchanged(connect, services):
    alice, bob, room = two_player_room(connect)
    carol = connect()
    carol.emit('joinRoom', {'roomCode': room['code'], 'playerName': 'Carol'})
    stored = services.store.get(room['id'])
    assert [p.name for p in stored.players] == ['Alice', 'Bob']


def test_start_round_needs_two_players(connect, services):
    alice = connect()
    room = create_room(alice)
    alice.emit('startRound', {'roomId': room['id']})
    assert payloads(alice.get_received(), 'error') == [{'message': 'Not enough players to start a round'}]
    assert services.supervisor.armed_token(room['id']) is None


def test_full_round(connect, services):
    alice, bob, room = two_player_room(connect)
    alice_id, bob_id = (p['id'] for p in room['players'])

    bob.emit('startRound', {'roomId': room['id']})
    for player in (alice, bob):
        received = player.get_received()
        assert names(received) == ['roundStarted', 'roomUpdated']
        started = payloads(received, 'roundStarted')[0]
        assert started['timeoutMs'] == 15000
        assert started['room']['gamePhase'] == 'round'
        assert started['room']['currentRound'] == 1
        assert started['room']['rounds'][0]['state'] == 'waiting'
    assert services.supervisor.armed_token(room['id']) is not None

    alice.emit('submitMove', {'roomId': room['id'], 'move': 'rock'})
    for player in (alice, bob):
        received = player.get_received()
        assert names(received) == ['moveSubmitted']
        current = payloads(received, 'moveSubmitted')[0]['room']['rounds'][0]
        # bob can see that alice moved, not what she played
        assert current['moves'] == {alice_id: None}
        assert current['result'] is None

    bob.emit('submitMove', {'roomId': room['id'], 'move': 'beer'})
    for player in (alice, bob):
        received = player.get_received()
        assert names(received) == ['moveSubmitted', 'roundFinished']
        finished = payloads(received, 'roundFinished')[0]['room']
        assert finished['gamePhase'] == 'reveal'
        assert finished['rounds'][0]['state'] == 'finished'
        assert finished['rounds'][0]['moves'] == {alice_id: 'rock', bob_id: 'beer'}
        assert finished['rounds'][0]['result'] == {
            'winner': 'player1', 'player1Move': 'rock', 'player2Move': 'beer'
        }
    assert services.supervisor.armed_token(room['id']) is None


def test_play_again(connect):
    alice, bob, room = two_player_room(connect)
    alice.emit('startRound', {'roomId': room['id']})
    alice.emit('submitMove', {'roomId': room['id'], 'move': 'paper'})
    bob.emit('submitMove', {'roomId': room['id'], 'move': 'paper'})
    alice.get_received()

    alice.emit('startRound', {'roomId': room['id']})
    again = payloads(alice.get_received(), 'roundStarted')[0]['room']
    assert again['gamePhase'] == 'round'
    assert again['currentRound'] == 2
    assert [r['state'] for r in again['rounds']] == ['finished', 'waiting']
    assert again['rounds'][0]['result']['winner'] == 'draw'


def test_submit_move_errors(connect):
    alice, bob, room = two_player_room(connect)
    carol = connect()

    alice.emit('submitMove', {'roomId': room['id'], 'move': 'rock'})
    assert payloads(alice.get_received(), 'error') == [{'message': 'Cannot submit move - not in round phase'}]

    alice.emit('startRound', {'roomId': room['id']})
    alice.get_received()
    bob.get_received()

    alice.emit('submitMove', {'roomId': room['id'], 'move': 'scissors'})
    assert 'move' in payloads(alice.get_received(), 'error')[0]['message']

    carol.emit('submitMove', {'roomId': room['id'], 'move': 'rock'})
    assert payloads(carol.get_received(), 'error') == [{'message': 'You are not a player in this room'}]

    alice.emit('submitMove', {'roomId': 'missing', 'move': 'rock'})
    assert payloads(alice.get_received(), 'error') == [{'message': 'Room not found'}]
    assert bob.get_received() == []


def test_resubmission_overwrites(connect, services):
    alice, bob, room = two_player_room(connect)
    alice.emit('startRound', {'roomId': room['id']})
    alice.emit('submitMove', {'roomId': room['id'], 'move': 'rock'})
    alice.emit('submitMove', {'roomId': room['id'], 'move': 'beer'})
    received = alice.get_received()
    assert 'roundFinished' not in names(received)

    bob.emit('submitMove', {'roomId': room['id'], 'move': 'paper'})
    finished = payloads(bob.get_received(), 'roundFinished')[0]['room']
    assert finished['rounds'][0]['result'] == {
        'winner': 'player1', 'player1Move': 'beer', 'player2Move': 'paper'
    }


def test_unexpected_failure_is_reported_to_sender_only(connect, services, monkeypatch):
    alice, bob, room = two_player_room(connect)

    def _broken(*args, **kwargs):
        raise RuntimeError('store offline')

    monkeypatch.setattr(services.store, 'update', _broken)
    alice.emit('startRound', {'roomId': room['id']})
    assert payloads(alice.get_received(), 'error') == [{'message': 'Failed to start round'}]
    assert bob.get_received() == []
    assert services.supervisor.armed_token(room['id']) is None


def test_disconnect_notifies_remaining_player(connect, services):
    alice, bob, room = two_player_room(connect)
    bob_id = room['players'][1]['id']
    alice.emit('startRound', {'roomId': room['id']})
    alice.get_received()

    bob.disconnect()

    gone = payloads(alice.get_received(), 'playerDisconnected')
    assert len(gone) == 1
    assert gone[0]['playerId'] == bob_id
    assert [p['name'] for p in gone[0]['room']['players']] == ['Alice']
    assert services.supervisor.armed_token(room['id']) is None


def test_last_disconnect_deletes_room(connect, services):
    alice = connect()
    room = create_room(alice)
    alice.disconnect()
    assert services.store.get(room['id']) is None
    assert services.store.get_by_code(room['code']) is None


def test_leave_room(connect, services):
    alice, bob, room = two_player_room(connect)
    bob_id = room['players'][1]['id']

    bob.emit('leaveRoom', {'roomId': room['id']})
    assert payloads(bob.get_received(), 'roomLeft') == [{'roomId': room['id']}]
    left = payloads(alice.get_received(), 'playerLeft')
    assert left[0]['playerId'] == bob_id
    assert len(left[0]['room']['players']) == 1

    # bob no longer receives broadcasts for this room
    carol = connect()
    join_room(carol, room, 'Carol')
    assert bob.get_received() == []

    bob.emit('leaveRoom', {'roomId': room['id']})
    assert payloads(bob.get_received(), 'error') == [{'message': 'You are not a player in this room'}]


def test_leaving_last_player_deletes_room(connect, services):
    alice = connect()
    room = create_room(alice)
    alice.emit('leaveRoom', {'roomId': room['id']})
    assert names(alice.get_received()) == ['roomLeft']
    assert services.store.get(room['id']) is None
