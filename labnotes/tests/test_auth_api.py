from conftest import ADMIN_PASSWORD, DEMO_PASSWORD, auth_header, login


def test_login_returns_token_and_admin_user(client):
    response = client.post('/api/auth/login', json={'username': 'admin', 'password': ADMIN_PASSWORD})
    assert response.status_code == 200
    data = response.get_json()
    assert data['token']
    assert data['user']['username'] == 'admin'
    assert data['user']['isAdmin'] is True
    assert 'hashedPassword' not in data['user']
    assert response.headers['Cache-Control'] == 'no-store'


def test_login_rejects_wrong_password(client):
    response = client.post('/api/auth/login', json={'username': 'admin', 'password': 'wrong'})
    assert response.status_code == 401
    data = response.get_json()
    assert data['code'] == 'INVALID_CREDENTIALS'
    assert data['message'] == 'Invalid username or password'
    assert data['remainingAttempts'] == 4


def test_login_unknown_user_looks_like_wrong_password(client):
    response = client.post('/api/auth/login', json={'username': 'ghost', 'password': 'whatever1'})
    assert response.status_code == 401
    assert response.get_json()['code'] == 'INVALID_CREDENTIALS'


def test_login_requires_both_fields(client):
    response = client.post('/api/auth/login', json={'username': 'admin'})
    assert response.status_code == 400
    assert response.get_json()['code'] == 'VALIDATION_ERROR'


def test_login_rejects_non_string_fields(client):
    response = client.post('/api/auth/login', json={'username': 5, 'password': 'x'})
    assert response.status_code == 400
    assert response.get_json()['code'] == 'VALIDATION_ERROR'

    response = client.post('/api/auth/login', json=['admin', 'secret'])
    assert response.status_code == 400


def test_register_rejects_non_string_email(client):
    response = client.post('/api/auth/register', json={
        'username': 'carol',
        'email': ['carol@example.com'],
        'password': 'longenough1',
    })
    assert response.status_code == 400
    assert response.get_json()['code'] == 'VALIDATION_ERROR'


def test_repeated_failures_lock_the_account(client):
    for _ in range(4):
        assert client.post('/api/auth/login', json={'username': 'demo', 'password': 'nope'}).status_code == 401
    locked = client.post('/api/auth/login', json={'username': 'demo', 'password': 'nope'})
    assert locked.status_code == 423
    assert locked.get_json()['retryAfter'] > 0

    # Even the right password is refused while locked
    again = client.post('/api/auth/login', json={'username': 'demo', 'password': DEMO_PASSWORD})
    assert again.status_code == 423


def test_me_with_token(client, admin_token):
    response = client.get('/api/auth/me', headers=auth_header(admin_token))
    assert response.status_code == 200
    assert response.get_json()['username'] == 'admin'


def test_me_without_token_is_401(client):
    response = client.get('/api/auth/me')
    assert response.status_code == 401
    assert response.get_json()['code'] == 'TOKEN_INVALID'


def test_me_with_garbage_token_is_401(client):
    response = client.get('/api/auth/me', headers=auth_header('not-a-real-token'))
    assert response.status_code == 401
    assert response.get_json()['message'] == 'Session not found'


def test_logout_revokes_token(client, admin_token):
    response = client.post('/api/auth/logout', headers=auth_header(admin_token))
    assert response.status_code == 200
    assert client.get('/api/auth/me', headers=auth_header(admin_token)).status_code == 401


def test_logout_is_idempotent_and_needs_no_token(client, admin_token):
    assert client.post('/api/auth/logout', headers=auth_header(admin_token)).status_code == 200
    assert client.post('/api/auth/logout', headers=auth_header(admin_token)).status_code == 200
    assert client.post('/api/auth/logout').status_code == 200


def test_each_login_gets_an_independent_session(client):
    first = login(client)
    second = login(client)
    assert first != second
    client.post('/api/auth/logout', headers=auth_header(first))
    assert client.get('/api/auth/me', headers=auth_header(second)).status_code == 200


def test_register_creates_researcher_and_token(client):
    response = client.post('/api/auth/register', json={
        'username': 'newuser',
        'email': 'new@example.com',
        'password': 'password123',
    })
    assert response.status_code == 201
    data = response.get_json()
    assert data['user']['displayName'] == 'newuser'
    assert data['user']['isAdmin'] is False
    assert data['user']['role'] == 'Researcher'
    me = client.get('/api/auth/me', headers=auth_header(data['token']))
    assert me.get_json()['email'] == 'new@example.com'


def test_register_validation_error(client):
    response = client.post('/api/auth/register', json={
        'username': 'ab',
        'email': 'not-an-email',
        'password': 'short',
    })
    assert response.status_code == 400
    data = response.get_json()
    assert data['code'] == 'VALIDATION_ERROR'
    assert len(data['errors']) == 3


def test_register_duplicate_username(client):
    response = client.post('/api/auth/register', json={
        'username': 'admin',
        'email': 'other@example.com',
        'password': 'password123',
    })
    assert response.status_code == 409
    assert response.get_json()['message'] == 'Username already taken'


def test_register_duplicate_email_is_case_insensitive(client):
    response = client.post('/api/auth/register', json={
        'username': 'someone',
        'email': 'ADMIN@example.com',
        'password': 'password123',
    })
    assert response.status_code == 409
    assert response.get_json()['message'] == 'Email already in use'


def test_forgot_password_is_neutral_for_unknown_email(client, mail_outbox):
    response = client.post('/api/auth/forgot-password', json={'email': 'nobody@example.com'})
    assert response.status_code == 200
    assert 'If your email exists' in response.get_json()['message']
    assert mail_outbox == []


def test_forgot_password_without_mail_config_still_succeeds(client):
    response = client.post('/api/auth/forgot-password', json={'email': 'demo@example.com'})
    assert response.status_code == 200


def test_password_reset_flow(client, mail_outbox, demo_token):
    response = client.post('/api/auth/forgot-password', json={'email': 'demo@example.com'})
    assert response.status_code == 200
    assert len(mail_outbox) == 1
    message = mail_outbox[0]
    assert message['To'] == 'demo@example.com'
    html = message.get_payload()[0].get_payload(decode=True).decode('utf-8')
    assert 'expire in 1 hour' in html
    token = html.split('reset-password?token=')[1].split('"')[0]

    reset = client.post('/api/auth/reset-password', json={'token': token, 'password': 'brand-new-pass'})
    assert reset.status_code == 200

    # Existing sessions are revoked, the new password works, the token is single use
    assert client.get('/api/auth/me', headers=auth_header(demo_token)).status_code == 401
    login(client, 'demo', 'brand-new-pass')
    again = client.post('/api/auth/reset-password', json={'token': token, 'password': 'another-pass'})
    assert again.status_code == 400


def test_reset_password_rejects_unknown_token(client):
    response = client.post('/api/auth/reset-password', json={'token': 'bogus', 'password': 'password123'})
    assert response.status_code == 400
    assert response.get_json()['message'] == 'Invalid or expired reset token'


def test_change_password_keeps_current_session_only(client, admin_token):
    other = login(client)
    response = client.post('/api/auth/change-password', headers=auth_header(admin_token), json={
        'currentPassword': ADMIN_PASSWORD,
        'newPassword': 'changed-pass-1',
    })
    assert response.status_code == 200
    assert client.get('/api/auth/me', headers=auth_header(admin_token)).status_code == 200
    assert client.get('/api/auth/me', headers=auth_header(other)).status_code == 401
    login(client, 'admin', 'changed-pass-1')


def test_change_password_wrong_current(client, admin_token):
    response = client.post('/api/auth/change-password', headers=auth_header(admin_token), json={
        'currentPassword': 'wrong',
        'newPassword': 'changed-pass-1',
    })
    assert response.status_code == 400
    assert response.get_json()['message'] == 'Current password is incorrect'


def test_health(client, admin_token):
    assert client.get('/api/auth/health').get_json()['authenticated'] is False
    data = client.get('/api/auth/health', headers=auth_header(admin_token)).get_json()
    assert data['ok'] is True
    assert data['authenticated'] is True


def test_unknown_route_is_json_404(client):
    response = client.get('/api/nope')
    assert response.status_code == 404
    assert response.get_json()['code'] == 'NOT_FOUND'


def test_request_id_is_echoed(client):
    response = client.get('/api/auth/health', headers={'X-Request-ID': 'abc123'})
    assert response.headers['X-Request-ID'] == 'abc123'
