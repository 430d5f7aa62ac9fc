"""
Tests for chats and messages.
"""

from tests.conftest import headers_for


def open_chat(client, other_user_id, headers):
    return client.post('/api/chats', json={'user_id': other_user_id}, headers=headers)


def send(client, chat_id, headers, content='Hello', **extra):
    return client.post(f'/api/chats/{chat_id}/messages', json={'content': content, **extra}, headers=headers)


class TestCreateChat:
    """Tests for POST /api/chats"""

    def test_create_chat(self, client, test_user, second_user, auth_headers):
        response = open_chat(client, second_user['id'], auth_headers)

        assert response.status_code == 201
        chat = response.get_json()['chat']
        assert response.get_json()['existing'] is False
        assert chat['participant']['id'] == second_user['id']
        assert {chat['user1_id'], chat['user2_id']} == {test_user['id'], second_user['id']}
        assert chat['user1_id'] < chat['user2_id']

    def test_one_chat_per_pair(self, client, test_user, second_user, auth_headers, second_auth_headers):
        first = open_chat(client, second_user['id'], auth_headers).get_json()['chat']
        second = open_chat(client, test_user['id'], second_auth_headers)

        assert second.status_code == 200
        assert second.get_json()['existing'] is True
        assert second.get_json()['chat']['id'] == first['id']

    def test_cannot_chat_with_yourself(self, client, test_user, auth_headers):
        response = open_chat(client, test_user['id'], auth_headers)

        assert response.status_code == 400

    def test_unknown_user(self, client, auth_headers):
        response = open_chat(client, 99999, auth_headers)

        assert response.status_code == 404

    def test_create_chat_by_username(self, client, second_user, auth_headers):
        response = client.post('/api/chats', json={'username': second_user['username'].upper()},
                               headers=auth_headers)

        assert response.status_code == 201
        assert response.get_json()['chat']['participant']['id'] == second_user['id']

    def test_unknown_username(self, client, auth_headers):
        response = client.post('/api/chats', json={'username': 'nobody_here'}, headers=auth_headers)

        assert response.status_code == 404

    def test_user_id_required(self, client, auth_headers):
        response = client.post('/api/chats', json={}, headers=auth_headers)

        assert response.status_code == 400


class TestMessages:
    """Tests for /api/chats/:id/messages"""

    def test_send_and_read(self, client, second_user, auth_headers, second_auth_headers):
        chat = open_chat(client, second_user['id'], auth_headers).get_json()['chat']

        response = send(client, chat['id'], auth_headers, 'Hi there')

        assert response.status_code == 201
        message = response.get_json()['message']
        assert message['receiver_id'] == second_user['id']
        assert message['read'] is False

        messages = client.get(f"/api/chats/{chat['id']}/messages",
                              headers=second_auth_headers).get_json()['messages']
        assert [m['content'] for m in messages] == ['Hi there']
        assert messages[0]['read'] is True

    def test_messages_oldest_first(self, client, second_user, auth_headers, second_auth_headers):
        chat = open_chat(client, second_user['id'], auth_headers).get_json()['chat']
        send(client, chat['id'], auth_headers, 'one')
        send(client, chat['id'], second_auth_headers, 'two')
        send(client, chat['id'], auth_headers, 'three')

        messages = client.get(f"/api/chats/{chat['id']}/messages", headers=auth_headers).get_json()['messages']

        assert [m['content'] for m in messages] == ['one', 'two', 'three']

    def test_unread_count(self, client, second_user, auth_headers, second_auth_headers):
        chat = open_chat(client, second_user['id'], auth_headers).get_json()['chat']
        send(client, chat['id'], auth_headers, 'one')
        send(client, chat['id'], auth_headers, 'two')

        before = client.get('/api/chats/unread-count', headers=second_auth_headers).get_json()
        sender_count = client.get('/api/chats/unread-count', headers=auth_headers).get_json()
        client.get(f"/api/chats/{chat['id']}/messages", headers=second_auth_headers)
        after = client.get('/api/chats/unread-count', headers=second_auth_headers).get_json()

        assert before['unread_count'] == 2
        assert sender_count['unread_count'] == 0
        assert after['unread_count'] == 0

    def test_list_chats(self, client, second_user, auth_headers, second_auth_headers):
        chat = open_chat(client, second_user['id'], auth_headers).get_json()['chat']
        send(client, chat['id'], auth_headers, 'latest news')

        chats = client.get('/api/chats', headers=second_auth_headers).get_json()['chats']

        assert len(chats) == 1
        assert chats[0]['last_message']['content'] == 'latest news'
        assert chats[0]['last_message_time'] is not None
        assert chats[0]['unread_count'] == 1

    def test_outsider_cannot_read_or_send(self, client, second_user, auth_headers, make_user):
        chat = open_chat(client, second_user['id'], auth_headers).get_json()['chat']
        outsider = headers_for(client, make_user())

        assert client.get(f"/api/chats/{chat['id']}/messages", headers=outsider).status_code == 403
        assert send(client, chat['id'], outsider).status_code == 403

    def test_empty_message(self, client, second_user, auth_headers):
        chat = open_chat(client, second_user['id'], auth_headers).get_json()['chat']

        assert send(client, chat['id'], auth_headers, '   ').status_code == 400

    def test_message_length_limit(self, client, second_user, auth_headers):
        chat = open_chat(client, second_user['id'], auth_headers).get_json()['chat']

        assert send(client, chat['id'], auth_headers, 'x' * 5000).status_code == 201
        assert send(client, chat['id'], auth_headers, 'x' * 5001).status_code == 400

    def test_attachment_only_message(self, client, second_user, auth_headers):
        chat = open_chat(client, second_user['id'], auth_headers).get_json()['chat']
        attachment = {
            'name': 'receipt.pdf',
            'type': 'application/pdf',
            'url': 'https://files.example.com/storage/v1/object/public/chat_attachments/1/abc-1.pdf',
            'size': 2048,
        }

        response = send(client, chat['id'], auth_headers, '', attachment=attachment)

        assert response.status_code == 201
        assert response.get_json()['message']['attachment'] == attachment

    def test_attachment_too_large(self, client, second_user, auth_headers):
        chat = open_chat(client, second_user['id'], auth_headers).get_json()['chat']
        attachment = {'name': 'big.zip', 'url': 'https://files.example.com/big.zip', 'size': 5 * 1024 * 1024 + 1}

        response = send(client, chat['id'], auth_headers, 'see file', attachment=attachment)

        assert response.status_code == 400

    def test_missing_chat(self, client, auth_headers):
        assert client.get('/api/chats/99999/messages', headers=auth_headers).status_code == 404
