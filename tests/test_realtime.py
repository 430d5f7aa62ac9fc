"""
Tests for the Socket.IO change feed and the health endpoint.
"""

from taskloop import socketio
from taskloop.services.realtime import build_change
from tests.conftest import _get_token


def connect(app, user, client):
    token = _get_token(client, user['email'], user['password'])
    return socketio.test_client(app, auth={'token': token})


def change_events(socket_client):
    return [event['args'][0] for event in socket_client.get_received() if event['name'] == 'change']


class TestHealth:

    def test_health(self, client):
        response = client.get('/health')

        assert response.status_code == 200
        assert response.get_json()['status'] == 'ok'


class TestBuildChange:

    def test_version_is_updated_at(self):
        change = build_change('tasks', 'UPDATE', {'id': 1, 'updated_at': '2026-01-01T00:00:00'})

        assert change == {
            'table': 'tasks',
            'type': 'UPDATE',
            'record': {'id': 1, 'updated_at': '2026-01-01T00:00:00'},
            'version': '2026-01-01T00:00:00',
        }


class TestSocketConnection:

    def test_connect_requires_token(self, app, db_session):
        socket_client = socketio.test_client(app)

        assert not socket_client.is_connected()

    def test_connect_with_bad_token(self, app, db_session):
        socket_client = socketio.test_client(app, auth={'token': 'garbage'})

        assert not socket_client.is_connected()

    def test_connect_with_token(self, app, client, test_user):
        socket_client = connect(app, test_user, client)

        assert socket_client.is_connected()
        received = socket_client.get_received()
        assert received[0]['name'] == 'connected'
        assert received[0]['args'][0]['user_id'] == test_user['id']
        socket_client.disconnect()


class TestChangeFeed:

    def test_creator_hears_about_new_application(self, app, client, test_user, test_task, second_auth_headers):
        socket_client = connect(app, test_user, client)
        socket_client.get_received()

        client.post(f"/api/tasks/{test_task['id']}/apply", json={}, headers=second_auth_headers)

        events = change_events(socket_client)
        assert [(e['table'], e['type']) for e in events] == [('task_applications', 'INSERT')]
        assert events[0]['record']['task_id'] == test_task['id']
        assert events[0]['version'] == events[0]['record']['updated_at']
        socket_client.disconnect()

    def test_doer_gets_own_code_only(self, app, client, test_task, second_user,
                                     auth_headers, second_auth_headers):
        application = client.post(f"/api/tasks/{test_task['id']}/apply", json={},
                                  headers=second_auth_headers).get_json()['application']
        socket_client = connect(app, second_user, client)
        socket_client.get_received()

        client.post(f"/api/tasks/applications/{application['id']}/approve", headers=auth_headers)

        task_events = [e for e in change_events(socket_client) if e['table'] == 'tasks']
        assert len(task_events) == 1
        record = task_events[0]['record']
        assert record['doer_id'] == second_user['id']
        assert record['doer_verification_code'] is not None
        assert record['requestor_verification_code'] is None
        socket_client.disconnect()

    def test_chat_room_requires_participant(self, app, client, test_user, second_user, make_user, auth_headers):
        chat = client.post('/api/chats', json={'user_id': second_user['id']},
                           headers=auth_headers).get_json()['chat']
        outsider = make_user()

        member_socket = connect(app, test_user, client)
        outsider_socket = connect(app, outsider, client)
        member_socket.get_received()
        outsider_socket.get_received()

        member_socket.emit('join_chat', {'chat_id': chat['id']})
        outsider_socket.emit('join_chat', {'chat_id': chat['id']})

        assert member_socket.get_received()[0]['name'] == 'joined_chat'
        assert outsider_socket.get_received()[0]['name'] == 'error'
        member_socket.disconnect()
        outsider_socket.disconnect()
