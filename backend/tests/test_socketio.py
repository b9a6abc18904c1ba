import time


def _events(sio_client, name, timeout=2.0):
    deadline = time.time() + timeout
    seen = []
    while time.time() < deadline:
        seen.extend(sio_client.get_received('/ws'))
        if any(e['name'] == name for e in seen):
            break
        time.sleep(0.05)
    return [e for e in seen if e['name'] == name]


def test_socket_connect_and_join(sio_client):
    # Ensure we are connected to /ws
    if not sio_client.is_connected('/ws'):
        sio_client.connect(namespace='/ws')
    assert sio_client.is_connected('/ws')

    sio_client.emit('join_game', {'game_code': 'abc123'}, namespace='/ws')
    received = sio_client.get_received('/ws')
    joined = [pkt for pkt in received if pkt['name'] == 'joined']
    assert joined and joined[0]['args'][0] == {'room': 'game:ABC123'}


def test_join_requires_game_code(sio_client):
    sio_client.get_received('/ws')
    sio_client.emit('join_game', {}, namespace='/ws')
    received = sio_client.get_received('/ws')
    assert any(pkt['name'] == 'error' for pkt in received)


def test_ping_pong(sio_client):
    sio_client.get_received('/ws')
    sio_client.emit('ping', {'n': 1}, namespace='/ws')
    received = sio_client.get_received('/ws')
    assert any(pkt['name'] == 'pong' and pkt['args'][0] == {'n': 1} for pkt in received)


def test_state_changes_are_pushed_to_room(sio_client, client):
    code = client.post('/api/battles/create').get_json()['game_code']
    sio_client.emit('join_game', {'game_code': code}, namespace='/ws')
    sio_client.get_received('/ws')  # flush

    client.post(f'/api/battles/join/{code}')
    updates = _events(sio_client, 'state_update')
    assert updates
    assert updates[0]['args'][0] == {'game_code': code}


def test_leave_stops_updates(sio_client, client):
    code = client.post('/api/battles/create').get_json()['game_code']
    sio_client.emit('join_game', {'game_code': code}, namespace='/ws')
    sio_client.emit('leave_game', {'game_code': code}, namespace='/ws')
    received = sio_client.get_received('/ws')
    assert any(pkt['name'] == 'left' for pkt in received)

    client.post(f'/api/battles/join/{code}')
    assert _events(sio_client, 'state_update', timeout=0.3) == []


def test_expired_sessions_announce_end(flask_app, sio_client, client):
    code = client.post('/api/battles/create').get_json()['game_code']
    sio_client.emit('join_game', {'game_code': code}, namespace='/ws')
    sio_client.get_received('/ws')

    registry = flask_app.extensions['battle_sessions']
    session = registry.get_session(code)
    assert registry.sweep(now=session.created_at + registry.expiry) == [code]
    ended = _events(sio_client, 'session_ended')
    assert ended and ended[0]['args'][0] == {'game_code': code}
    assert client.get(f'/api/battles/{code}/state/1').status_code == 404
