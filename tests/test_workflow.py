"""
Tests for the completion handshake: verification codes, ratings, completion.
"""

import pytest
from sqlalchemy.orm import Query

from taskloop.models import Rating

from tests.conftest import task_payload, headers_for


def verify(client, task_id, code, headers):
    return client.post(f'/api/tasks/{task_id}/verify', json={'code': code}, headers=headers)


def rate(client, task_id, score, headers):
    return client.post(f'/api/tasks/{task_id}/rate', json={'rating': score}, headers=headers)


def get_task(client, task_id, headers=None):
    return client.get(f'/api/tasks/{task_id}', headers=headers or {}).get_json()['task']


def run_lifecycle(client, creator_headers, doer_headers, creator_score, doer_score, reward=50):
    """Create, assign, verify and rate one task. Returns its id.

    ``creator_score`` is what the creator gives the doer and ``doer_score``
    what the doer gives the creator.
    """
    task = client.post('/api/tasks', json=task_payload(reward=reward), headers=creator_headers).get_json()['task']
    application = client.post(f"/api/tasks/{task['id']}/apply", json={},
                              headers=doer_headers).get_json()['application']
    client.post(f"/api/tasks/applications/{application['id']}/approve", headers=creator_headers)

    requestor_code = get_task(client, task['id'], creator_headers)['requestor_verification_code']
    doer_code = get_task(client, task['id'], doer_headers)['doer_verification_code']

    assert verify(client, task['id'], requestor_code, doer_headers).get_json()['verified']
    assert verify(client, task['id'], doer_code, creator_headers).get_json()['verified']
    assert rate(client, task['id'], creator_score, creator_headers).status_code == 201
    assert rate(client, task['id'], doer_score, doer_headers).status_code == 201
    return task['id']


class TestVerifyCode:
    """Tests for POST /api/tasks/:id/verify"""

    def test_doer_verifies_with_requestor_code(self, client, assigned_task, second_auth_headers):
        response = verify(client, assigned_task['id'], assigned_task['requestor_code'], second_auth_headers)

        assert response.status_code == 200
        body = response.get_json()
        assert body['verified'] is True
        assert body['task']['is_doer_verified'] is True
        assert body['task']['is_requestor_verified'] is False

    def test_creator_verifies_with_doer_code(self, client, assigned_task, auth_headers):
        response = verify(client, assigned_task['id'], assigned_task['doer_code'], auth_headers)

        body = response.get_json()
        assert body['verified'] is True
        assert body['task']['is_requestor_verified'] is True
        assert body['task']['is_doer_verified'] is False

    def test_wrong_code_changes_nothing(self, client, assigned_task, auth_headers, second_auth_headers):
        wrong = '000000' if assigned_task['requestor_code'] != '000000' else '111111'

        response = verify(client, assigned_task['id'], wrong, second_auth_headers)

        assert response.status_code == 200
        assert response.get_json()['verified'] is False
        task = get_task(client, assigned_task['id'], auth_headers)
        assert task['is_doer_verified'] is False
        assert task['is_requestor_verified'] is False

    def test_own_code_is_not_accepted(self, client, assigned_task, second_auth_headers):
        if assigned_task['doer_code'] == assigned_task['requestor_code']:
            pytest.skip('codes collided')

        response = verify(client, assigned_task['id'], assigned_task['doer_code'], second_auth_headers)

        assert response.get_json()['verified'] is False

    def test_retry_after_wrong_code(self, client, assigned_task, second_auth_headers):
        verify(client, assigned_task['id'], 'abcdef', second_auth_headers)

        response = verify(client, assigned_task['id'], assigned_task['requestor_code'], second_auth_headers)

        assert response.get_json()['verified'] is True

    def test_outsider_cannot_verify(self, client, assigned_task, make_user):
        outsider = headers_for(client, make_user())

        response = verify(client, assigned_task['id'], assigned_task['requestor_code'], outsider)

        assert response.status_code == 403

    def test_verify_before_assignment(self, client, test_task, auth_headers):
        response = verify(client, test_task['id'], '123456', auth_headers)

        assert response.status_code == 409

    def test_missing_code(self, client, assigned_task, auth_headers):
        response = client.post(f"/api/tasks/{assigned_task['id']}/verify", json={}, headers=auth_headers)

        assert response.status_code == 400

    def test_numeric_code_is_accepted(self, client, assigned_task, second_auth_headers):
        response = verify(client, assigned_task['id'], int(assigned_task['requestor_code']), second_auth_headers)

        assert response.status_code == 200
        assert response.get_json()['verified'] is True

    def test_code_of_wrong_type(self, client, assigned_task, second_auth_headers):
        response = verify(client, assigned_task['id'], ['123456'], second_auth_headers)

        assert response.status_code == 400
        assert response.get_json()['error'] == 'code must be a string of digits'


class TestRating:
    """Tests for POST /api/tasks/:id/rate"""

    def test_rating_requires_both_verifications(self, client, assigned_task, auth_headers, second_auth_headers):
        verify(client, assigned_task['id'], assigned_task['requestor_code'], second_auth_headers)

        response = rate(client, assigned_task['id'], 5, second_auth_headers)

        assert response.status_code == 409
        assert response.get_json()['reason'] == 'not_verified'
        task = get_task(client, assigned_task['id'], auth_headers)
        assert task['is_doer_rated'] is False

    @pytest.mark.parametrize('score', [0, 6, 'five', 4.5, None])
    def test_invalid_score(self, client, verified_task, auth_headers, score):
        response = rate(client, verified_task['id'], score, auth_headers)

        assert response.status_code == 400

    def test_outsider_cannot_rate(self, client, verified_task, make_user):
        outsider = headers_for(client, make_user())

        response = rate(client, verified_task['id'], 5, outsider)

        assert response.status_code == 403

    def test_full_lifecycle(self, client, verified_task, test_user, second_user,
                            auth_headers, second_auth_headers):
        task_id = verified_task['id']

        # creator rates the doer
        response = rate(client, task_id, 5, auth_headers)
        assert response.status_code == 201
        task = response.get_json()['task']
        assert task['is_requestor_rated'] is True
        assert task['status'] == 'active'

        # doer rates the creator, which completes the task
        response = rate(client, task_id, 4, second_auth_headers)
        assert response.status_code == 201
        task = response.get_json()['task']
        assert task['is_doer_rated'] is True
        assert task['status'] == 'completed'
        assert task['closed_reason'] == 'fulfilled'
        assert task['completed_at'] is not None

        doer_ratings = client.get(f"/api/users/{second_user['id']}/ratings").get_json()
        creator_ratings = client.get(f"/api/users/{test_user['id']}/ratings").get_json()
        assert doer_ratings['doer_rating'] == 5.0
        assert doer_ratings['rating_count_doer'] == 1
        assert doer_ratings['rating_count_creator'] == 0
        assert creator_ratings['creator_rating'] == 4.0
        assert creator_ratings['rating_count_creator'] == 1
        assert creator_ratings['rating_count_doer'] == 0

    def test_duplicate_rating_is_a_noop(self, client, verified_task, second_user, auth_headers):
        first = rate(client, verified_task['id'], 5, auth_headers)
        second = rate(client, verified_task['id'], 1, auth_headers)

        assert first.status_code == 201
        assert second.status_code == 200
        body = second.get_json()
        assert body['already_rated'] is True
        assert body['rating']['rating'] == 5

        ratings = client.get(f"/api/users/{second_user['id']}/ratings").get_json()
        assert ratings['doer_rating'] == 5.0
        assert ratings['rating_count_doer'] == 1

    def test_concurrent_duplicate_rating_is_a_noop(self, client, verified_task, second_user,
                                                   auth_headers, monkeypatch):
        assert rate(client, verified_task['id'], 5, auth_headers).status_code == 201

        # Make the existing-rating lookup miss once, as if a parallel request
        # inserted the row between that check and the commit
        original_first = Query.first
        hidden = []

        def first_missing_one_rating(query):
            if not hidden and query.column_descriptions[0]['entity'] is Rating:
                hidden.append(query)
                return None
            return original_first(query)

        monkeypatch.setattr(Query, 'first', first_missing_one_rating)

        response = rate(client, verified_task['id'], 2, auth_headers)

        assert hidden
        assert response.status_code == 200
        body = response.get_json()
        assert body['already_rated'] is True
        assert body['rating']['rating'] == 5

        monkeypatch.undo()
        ratings = client.get(f"/api/users/{second_user['id']}/ratings").get_json()
        assert ratings['doer_rating'] == 5.0
        assert ratings['rating_count_doer'] == 1

    def test_rating_after_completion_is_a_noop(self, client, verified_task, auth_headers, second_auth_headers):
        rate(client, verified_task['id'], 5, auth_headers)
        rate(client, verified_task['id'], 5, second_auth_headers)

        response = rate(client, verified_task['id'], 2, second_auth_headers)

        assert response.status_code == 200
        assert response.get_json()['already_rated'] is True

    def test_rolling_average(self, client, test_user, second_user, auth_headers, second_auth_headers):
        run_lifecycle(client, auth_headers, second_auth_headers, creator_score=5, doer_score=2)
        run_lifecycle(client, auth_headers, second_auth_headers, creator_score=3, doer_score=5)

        doer_ratings = client.get(f"/api/users/{second_user['id']}/ratings").get_json()
        creator_ratings = client.get(f"/api/users/{test_user['id']}/ratings").get_json()
        assert doer_ratings['doer_rating'] == pytest.approx(4.0)
        assert doer_ratings['rating_count_doer'] == 2
        assert creator_ratings['creator_rating'] == pytest.approx(3.5)
        assert creator_ratings['rating_count_creator'] == 2

    def test_history(self, client, test_user, auth_headers, second_auth_headers):
        task_id = run_lifecycle(client, auth_headers, second_auth_headers, 4, 4)

        creator_history = client.get('/api/tasks/history', headers=auth_headers).get_json()['tasks']
        doer_history = client.get('/api/tasks/history', headers=second_auth_headers).get_json()['tasks']

        assert [(t['id'], t['role']) for t in creator_history] == [(task_id, 'creator')]
        assert [(t['id'], t['role']) for t in doer_history] == [(task_id, 'doer')]


class TestPendingRating:
    """Tests for GET /api/tasks/pending-rating"""

    def test_nothing_pending(self, client, auth_headers):
        response = client.get('/api/tasks/pending-rating', headers=auth_headers)

        assert response.status_code == 200
        assert response.get_json()['task'] is None

    def test_verified_task_needs_rating(self, client, verified_task, auth_headers, second_auth_headers):
        rate(client, verified_task['id'], 5, auth_headers)

        creator_pending = client.get('/api/tasks/pending-rating', headers=auth_headers).get_json()['task']
        doer_pending = client.get('/api/tasks/pending-rating', headers=second_auth_headers).get_json()['task']

        assert creator_pending is None
        assert doer_pending['id'] == verified_task['id']


class TestShareCode:
    """Tests for POST /api/tasks/:id/share-code"""

    def test_creator_shares_code_with_doer(self, client, assigned_task, second_auth_headers, auth_headers):
        response = client.post(f"/api/tasks/{assigned_task['id']}/share-code", headers=auth_headers)

        assert response.status_code == 201
        body = response.get_json()
        assert assigned_task['requestor_code'] in body['chat_message']['content']

        messages = client.get(f"/api/chats/{body['chat_id']}/messages",
                              headers=second_auth_headers).get_json()['messages']
        assert len(messages) == 1
        assert messages[0]['content'].startswith('My verification code for task "')

    def test_share_code_before_assignment(self, client, test_task, auth_headers):
        response = client.post(f"/api/tasks/{test_task['id']}/share-code", headers=auth_headers)

        assert response.status_code == 409
