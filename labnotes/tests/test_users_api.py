import io
from unittest.mock import MagicMock, patch

from conftest import auth_header

PNG_BYTES = b'\x89PNG\r\n\x1a\n' + b'\x00' * 64


def _avatar(data=PNG_BYTES, filename='me.png', content_type='image/png'):
    return {'avatar': (io.BytesIO(data), filename, content_type)}


def test_get_user(client, demo_token):
    response = client.get('/api/users/1', headers=auth_header(demo_token))
    assert response.status_code == 200
    assert response.get_json()['username'] == 'admin'


def test_get_missing_user(client, demo_token):
    response = client.get('/api/users/999', headers=auth_header(demo_token))
    assert response.status_code == 404


def test_update_own_profile(client, demo_token):
    response = client.put('/api/users/2', headers=auth_header(demo_token), json={
        'displayName': 'Dr. Demo',
        'bio': 'Protein folding',
        'isAdmin': True,
    })
    assert response.status_code == 200
    data = response.get_json()
    assert data['displayName'] == 'Dr. Demo'
    assert data['bio'] == 'Protein folding'
    # Only administrators may change privileges
    assert data['isAdmin'] is False


def test_cannot_update_someone_else(client, demo_token):
    response = client.put('/api/users/1', headers=auth_header(demo_token), json={'bio': 'hacked'})
    assert response.status_code == 403


def test_update_profile_rejects_taken_email(client, demo_token):
    response = client.put('/api/users/2', headers=auth_header(demo_token), json={'email': 'admin@example.com'})
    assert response.status_code == 409


def test_settings_require_complete_s3_config(client, demo_token):
    response = client.put('/api/users/2/settings', headers=auth_header(demo_token), json={
        's3Enabled': True,
        's3Bucket': 'notes',
    })
    assert response.status_code == 400
    assert 's3Endpoint' in response.get_json()['missing']


def test_settings_hide_secrets(client, demo_token):
    response = client.put('/api/users/2/settings', headers=auth_header(demo_token), json={
        'smtpHost': 'smtp.example.com',
        'smtpPort': '2525',
        'smtpUser': 'demo@example.com',
        'smtpPassword': 'hunter22',
    })
    assert response.status_code == 200
    data = response.get_json()
    assert data['smtpConfigured'] is True
    assert 'hunter22' not in response.get_data(as_text=True)


def test_settings_reject_non_numeric_port(client, demo_token):
    response = client.put('/api/users/2/settings', headers=auth_header(demo_token), json={'smtpPort': 'abc'})
    assert response.status_code == 400


def test_storage_test_when_disabled(client, demo_token):
    response = client.post('/api/users/2/storage/test', headers=auth_header(demo_token))
    assert response.status_code == 200
    assert response.get_json()['ok'] is False


def test_local_avatar_upload_serve_and_delete(client, demo_token):
    response = client.post('/api/users/2/avatar', headers=auth_header(demo_token),
                           data=_avatar(), content_type='multipart/form-data')
    assert response.status_code == 200
    avatar_url = response.get_json()['avatarUrl']
    assert avatar_url.startswith('/api/users/2/avatar/')

    served = client.get(avatar_url)
    assert served.status_code == 200
    assert served.data == PNG_BYTES
    served.close()

    me = client.get('/api/auth/me', headers=auth_header(demo_token)).get_json()
    assert me['avatarUrl'] == avatar_url

    removed = client.delete('/api/users/2/avatar', headers=auth_header(demo_token))
    assert removed.status_code == 200
    assert client.get(avatar_url).status_code == 404


def test_replacing_local_avatar_removes_old_file(client, demo_token):
    first = client.post('/api/users/2/avatar', headers=auth_header(demo_token),
                        data=_avatar(filename='a.png'), content_type='multipart/form-data').get_json()['avatarUrl']
    second = client.post('/api/users/2/avatar', headers=auth_header(demo_token),
                         data=_avatar(filename='b.png'), content_type='multipart/form-data').get_json()['avatarUrl']
    assert first != second
    assert client.get(first).status_code == 404


def test_avatar_rejects_wrong_type(client, demo_token):
    response = client.post('/api/users/2/avatar', headers=auth_header(demo_token),
                           data=_avatar(b'%PDF-1.4', 'doc.pdf', 'application/pdf'),
                           content_type='multipart/form-data')
    assert response.status_code == 400


def test_avatar_rejects_oversized_file(client, demo_token):
    response = client.post('/api/users/2/avatar', headers=auth_header(demo_token),
                           data=_avatar(b'\x00' * (2 * 1024 * 1024 + 1)),
                           content_type='multipart/form-data')
    assert response.status_code == 400
    assert '2MB' in response.get_json()['message']


def test_avatar_requires_file(client, demo_token):
    response = client.post('/api/users/2/avatar', headers=auth_header(demo_token),
                           data={}, content_type='multipart/form-data')
    assert response.status_code == 400


def test_avatar_for_other_user_forbidden(client, demo_token):
    response = client.post('/api/users/1/avatar', headers=auth_header(demo_token),
                           data=_avatar(), content_type='multipart/form-data')
    assert response.status_code == 403


def test_admin_may_change_another_avatar(client, admin_token):
    response = client.post('/api/users/2/avatar', headers=auth_header(admin_token),
                           data=_avatar(), content_type='multipart/form-data')
    assert response.status_code == 200


def test_s3_avatar_upload(client, demo_token):
    settings = client.put('/api/users/2/settings', headers=auth_header(demo_token), json={
        's3Enabled': True,
        's3Endpoint': 'https://s3.amazonaws.com',
        's3Region': 'us-east-1',
        's3Bucket': 'lab-avatars',
        's3AccessKey': 'testing',
        's3SecretKey': 'testing',
    })
    assert settings.status_code == 200

    s3 = MagicMock()
    with patch('services.s3_service._aws_client', return_value=s3) as make_client:
        assert client.post('/api/users/2/storage/test', headers=auth_header(demo_token)).get_json()['ok'] is True

        first = client.post('/api/users/2/avatar', headers=auth_header(demo_token),
                            data=_avatar(filename='my face.png'), content_type='multipart/form-data')
        assert first.status_code == 200
        first_url = first.get_json()['avatarUrl']
        assert first_url.startswith('https://s3.amazonaws.com/lab-avatars/files/')
        assert first_url.endswith('-my_face.png')
        fileobj, bucket, key = s3.upload_fileobj.call_args.args
        assert bucket == 'lab-avatars'
        assert fileobj.read() == PNG_BYTES

        # Replacing the avatar removes the previous object
        client.post('/api/users/2/avatar', headers=auth_header(demo_token),
                    data=_avatar(filename='new.png'), content_type='multipart/form-data')
        s3.delete_object.assert_called_once_with(Bucket='lab-avatars', Key=key)

    config = make_client.call_args.args[0]
    assert config.bucket == 'lab-avatars'
    assert config.access_key == 'testing'


def test_admin_lists_users(client, admin_token):
    response = client.get('/api/admin/users', headers=auth_header(admin_token))
    assert response.status_code == 200
    assert [u['username'] for u in response.get_json()] == ['admin', 'demo']

    filtered = client.get('/api/admin/users?role=Administrator', headers=auth_header(admin_token))
    assert [u['username'] for u in filtered.get_json()] == ['admin']


def test_non_admin_cannot_list_users(client, demo_token):
    response = client.get('/api/admin/users', headers=auth_header(demo_token))
    assert response.status_code == 403


def test_admin_can_promote_user(client, admin_token):
    response = client.put('/api/admin/users/2', headers=auth_header(admin_token),
                          json={'isAdmin': True, 'role': 'Administrator'})
    assert response.status_code == 200
    assert response.get_json()['isAdmin'] is True
