# tripboard/api/auth/test_auth_routes.py
"""인증 API 테스트"""

from tripboard.services.google_auth_service import IdentityClaims


def register_google_user(fake_google_auth, code, email, uid='google-uid-1'):
    fake_google_auth.users[code] = IdentityClaims(subject_id=uid, email=email, display_name='여행자')


def test_social_login_issues_tokens_for_allowed_email(client, fake_google_auth, fake_db):
    register_google_user(fake_google_auth, 'good-code', 'traveler@example.com')

    response = client.post('/api/auth/social', json={'provider': 'google', 'auth_code': 'good-code'})

    assert response.status_code == 200
    body = response.get_json()
    assert body['access_token'] and body['refresh_token']
    assert body['user']['uid'] == 'google-uid-1'
    assert 'users/google-uid-1' in fake_db.store


def test_social_login_rejects_unlisted_email(client, fake_google_auth, fake_db):
    register_google_user(fake_google_auth, 'stranger-code', 'stranger@example.com')

    response = client.post('/api/auth/social', json={'provider': 'google', 'auth_code': 'stranger-code'})

    assert response.status_code == 403
    assert response.get_json()['error_code'] == 'UNAUTHORIZED_EMAIL'
    assert 'access_token' not in response.get_json()
    assert fake_db.store == {}


def test_social_login_invalid_code_and_payload(client):
    response = client.post('/api/auth/social', json={'provider': 'google', 'auth_code': 'unknown'})
    assert response.status_code == 401
    assert response.get_json()['error_code'] == 'INVALID_AUTH_CODE'

    response = client.post('/api/auth/social', json={'provider': 'kakao', 'auth_code': 'x'})
    assert response.status_code == 400
    assert response.get_json()['error_code'] == 'VALIDATION_ERROR'


def test_restore_session(client, fake_db, auth_headers):
    fake_db.store['users/u1'] = {'uid': 'u1', 'email': 'companion@example.com'}

    response = client.get('/api/auth/session', headers=auth_headers('u1'))

    assert response.status_code == 200
    body = response.get_json()
    assert body['status'] == 'resolved'
    assert body['user']['uid'] == 'u1'
    assert body['user']['email'] == 'companion@example.com'
    assert body['user']['last_login']


def test_restore_session_without_profile(client, auth_headers):
    response = client.get('/api/auth/session', headers=auth_headers('ghost'))
    assert response.status_code == 401
    assert response.get_json()['error_code'] == 'SESSION_NOT_FOUND'


def test_restore_session_revokes_token_for_removed_email(client, fake_db, auth_headers):
    fake_db.store['users/u2'] = {'uid': 'u2', 'email': 'removed@example.com'}
    headers = auth_headers('u2')

    response = client.get('/api/auth/session', headers=headers)
    assert response.status_code == 403

    response = client.get('/api/trips/', headers=headers)
    assert response.status_code == 401
    assert response.get_json()['error_code'] == 'TOKEN_REVOKED'


def test_removed_email_cannot_refresh_or_reach_data_routes(client, fake_db, token_pair):
    fake_db.store['users/u2'] = {'uid': 'u2', 'email': 'removed@example.com'}
    access_token, refresh_token = token_pair('u2')

    response = client.get('/api/auth/session', headers={'Authorization': f'Bearer {access_token}'})
    assert response.status_code == 403
    assert response.get_json()['error_code'] == 'UNAUTHORIZED_EMAIL'

    response = client.post('/api/auth/token/refresh', headers={'Authorization': f'Bearer {refresh_token}'})
    assert response.status_code == 403
    assert 'access_token' not in response.get_json()

    # 한 번 거부된 Refresh Token 은 무효화 목록에 올라감
    response = client.post('/api/auth/token/refresh', headers={'Authorization': f'Bearer {refresh_token}'})
    assert response.status_code == 401
    assert response.get_json()['error_code'] == 'TOKEN_REVOKED'


def test_data_routes_recheck_allow_list(client, fake_db, auth_headers):
    fake_db.store['users/u3'] = {'uid': 'u3', 'email': 'traveler@example.com'}
    headers = auth_headers('u3')
    assert client.get('/api/trips/', headers=headers).status_code == 200

    fake_db.store['users/u3']['email'] = 'removed@example.com'

    response = client.get('/api/trips/', headers=headers)
    assert response.status_code == 403
    assert response.get_json()['error_code'] == 'UNAUTHORIZED_EMAIL'
    response = client.post('/api/trips/', headers=headers, json={
        'title': '몰래 여행', 'destination': '오사카', 'start_date': '2025-07-01', 'end_date': '2025-07-02',
    })
    assert response.status_code == 401
    assert not any(path.startswith('trips/') for path in fake_db.store)


def test_logout_revokes_both_tokens(client, token_pair):
    access_token, refresh_token = token_pair('u1')

    response = client.post('/api/auth/logout', json={'access_token': access_token, 'refresh_token': refresh_token})
    assert response.status_code == 200

    response = client.get('/api/trips/', headers={'Authorization': f'Bearer {access_token}'})
    assert response.status_code == 401
    response = client.post('/api/auth/token/refresh', headers={'Authorization': f'Bearer {refresh_token}'})
    assert response.status_code == 401


def test_refresh_token(client, token_pair):
    _, refresh_token = token_pair('u1')
    response = client.post('/api/auth/token/refresh', headers={'Authorization': f'Bearer {refresh_token}'})
    assert response.status_code == 200
    assert response.get_json()['access_token']


def test_logout_with_invalid_token(client):
    response = client.post('/api/auth/logout', json={'access_token': 'not-a-jwt', 'refresh_token': 'x'})
    assert response.status_code == 422
