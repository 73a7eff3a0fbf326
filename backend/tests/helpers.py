def payloads(received, name):
    """Payloads of every ``name`` event in a list of received packets."""
    return [pkt['args'][0] for pkt in received if pkt['name'] == name]


def names(received):
    return [pkt['name'] for pkt in received]


def create_room(test_client, name='Alice'):
    test_client.emit('createRoom', {'playerName': name})
    return payloads(test_client.get_received(), 'roomCreated')[0]['room']


def join_room(test_client, room, name='Bob', by_code=False):
    data = {'playerName': name}
    if by_code:
        data['roomCode'] = room['code']
    else:
        data['roomId'] = room['id']
    test_client.emit('joinRoom', data)
    return payloads(test_client.get_received(), 'roomUpdated')[-1]['room']


def two_player_room(connect):
    """Alice creates a room and Bob joins it. Queues are flushed."""
    alice, bob = connect(), connect()
    room = create_room(alice, 'Alice')
    room = join_room(bob, room, 'Bob')
    alice.get_received()
    return alice, bob, room
