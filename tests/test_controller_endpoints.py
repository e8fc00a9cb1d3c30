"""Tests for Controller API endpoints."""

import base64
import errno
import os

import pytest

from controller.main import engine_error_response
from engine.exceptions import (
    MalformedInputError,
    NotFoundError,
    StorageIOError,
    TruncatedStreamError,
)


def register(client, username, password="password123"):
    response = client.post('/auth/register', json={'username': username, 'password': password})
    assert response.status_code == 201
    return {'Authorization': f"Bearer {response.json()['api_key']}"}


def b64(key: bytes) -> str:
    return base64.b64encode(key).decode('ascii')


def upload(client, headers, name='notes.txt', content=b'hello world', content_type='text/plain', **extra):
    return client.post(
        '/files',
        files={'file': (name, content, content_type)},
        headers=headers,
        **extra
    )


@pytest.fixture
def alice(client):
    return register(client, 'alice')


@pytest.fixture
def bob(client):
    return register(client, 'bob')


class TestServiceEndpoints:
    """Test health and readiness endpoints."""

    def test_root_endpoint(self, client):
        response = client.get('/')
        assert response.status_code == 200
        assert response.json()['status'] == 'running'
        assert 'X-Request-ID' in response.headers

    def test_health(self, client):
        assert client.get('/health').json() == {'status': 'healthy', 'service': 'controller'}

    def test_ready(self, client):
        response = client.get('/ready')
        assert response.status_code == 200
        assert response.json() == {'ready': True, 'database': 'ok', 'storage': 'ok'}


class TestAuthEndpoints:
    """Test registration and login."""

    def test_register(self, client):
        response = client.post('/auth/register', json={'username': 'carol', 'password': 'pw'})
        assert response.status_code == 201
        data = response.json()
        assert data['api_key'].startswith('sf_')
        assert data['user_id']

    def test_register_duplicate(self, client, alice):
        response = client.post('/auth/register', json={'username': 'alice', 'password': 'other'})
        assert response.status_code == 400
        assert response.json()['code'] == 'USER_ALREADY_EXISTS'

    def test_login_rotates_api_key(self, client, alice):
        response = client.post('/auth/login', json={'username': 'alice', 'password': 'password123'})
        assert response.status_code == 200
        new_headers = {'Authorization': f"Bearer {response.json()['api_key']}"}

        assert client.get('/files', headers=alice).status_code == 401
        assert client.get('/files', headers=new_headers).status_code == 200

    def test_login_wrong_password(self, client, alice):
        response = client.post('/auth/login', json={'username': 'alice', 'password': 'nope'})
        assert response.status_code == 401
        assert response.json()['code'] == 'INVALID_CREDENTIALS'

    def test_missing_authorization(self, client):
        response = client.get('/files')
        assert response.status_code == 401
        assert response.json()['code'] == 'INVALID_API_KEY'

    def test_unknown_api_key(self, client):
        response = client.get('/files', headers={'Authorization': 'Bearer sf_fake_key'})
        assert response.status_code == 401
        assert response.json()['code'] == 'INVALID_API_KEY'

    def test_request_validation(self, client):
        response = client.post('/auth/register', json={'username': 'test'})
        assert response.status_code == 422


class TestPlaintextFiles:
    """Test upload and download without encryption."""

    def test_upload_and_download(self, client, alice):
        response = upload(client, alice, data={'description': 'my notes'})
        assert response.status_code == 201
        data = response.json()
        assert data['name'] == 'notes.txt'
        assert data['size'] == 11
        assert data['is_encrypted'] is False
        assert data['description'] == 'my notes'
        assert data['content_type'] == 'text/plain'
        assert 'storage_path' not in data

        download = client.get(f"/files/{data['file_id']}/download", headers=alice)
        assert download.status_code == 200
        assert download.content == b'hello world'
        assert download.headers['content-length'] == '11'
        assert download.headers['content-type'].startswith('text/plain')
        assert 'notes.txt' in download.headers['content-disposition']

    def test_traversal_name_is_reduced(self, client, alice):
        response = upload(client, alice, name='../../secret')
        assert response.status_code == 201
        assert response.json()['name'] == 'secret'

    def test_reupload_replaces(self, client, alice):
        first = upload(client, alice, content=b'v1').json()
        second = upload(client, alice, content=b'v2').json()

        assert second['replaced_file_id'] == first['file_id']
        assert client.get(f"/files/{first['file_id']}", headers=alice).status_code == 404

        fetched = client.get(f"/files/{second['file_id']}", headers=alice).json()
        assert fetched['replaced_file_id'] == first['file_id']


class TestEncryptedFiles:
    """Test upload and download with encryption keys."""

    def test_encrypted_round_trip(self, client, alice):
        key = os.urandom(32)
        payload = os.urandom(20000)

        response = upload(client, {**alice, 'X-Encryption-Key': b64(key)}, name='blob.bin',
                          content=payload, content_type='application/octet-stream')
        assert response.status_code == 201
        file_id = response.json()['file_id']
        assert response.json()['is_encrypted'] is True
        assert response.json()['size'] == len(payload)

        download = client.get(f'/files/{file_id}/download', headers={**alice, 'X-Decryption-Key': b64(key)})
        assert download.status_code == 200
        assert download.content == payload
        assert download.headers['content-length'] == str(len(payload))

    def test_download_without_key(self, client, alice):
        key = os.urandom(16)
        file_id = upload(client, {**alice, 'X-Encryption-Key': b64(key)}).json()['file_id']

        response = client.get(f'/files/{file_id}/download', headers=alice)
        assert response.status_code == 400
        assert response.json()['code'] == 'KEY_REQUIRED'

    def test_download_with_wrong_key(self, client, alice):
        file_id = upload(client, {**alice, 'X-Encryption-Key': b64(os.urandom(24))}).json()['file_id']

        response = client.get(
            f'/files/{file_id}/download',
            headers={**alice, 'X-Decryption-Key': b64(os.urandom(24))}
        )
        assert response.status_code == 401
        assert response.json()['code'] == 'AUTHENTICATION_FAILED'

    def test_invalid_key_length(self, client, alice):
        response = upload(client, {**alice, 'X-Encryption-Key': b64(b'short')})
        assert response.status_code == 400
        assert response.json()['code'] == 'INVALID_KEY'

    def test_key_not_base64(self, client, alice):
        response = upload(client, {**alice, 'X-Encryption-Key': 'not base64!'})
        assert response.status_code == 400
        assert response.json()['code'] == 'INVALID_KEY'


class TestFileManagement:
    """Test listing, metadata, update and delete endpoints."""

    def test_list_only_own_files(self, client, alice, bob):
        upload(client, alice, name='a.txt')
        upload(client, bob, name='b.txt')

        files = client.get('/files', headers=alice).json()['files']
        assert [f['name'] for f in files] == ['a.txt']

    def test_other_user_is_forbidden(self, client, alice, bob):
        file_id = upload(client, alice).json()['file_id']

        for response in (
            client.get(f'/files/{file_id}', headers=bob),
            client.get(f'/files/{file_id}/download', headers=bob),
            client.put(f'/files/{file_id}', json={'description': 'x'}, headers=bob),
            client.delete(f'/files/{file_id}', headers=bob),
        ):
            assert response.status_code == 403
            assert response.json()['code'] == 'UNAUTHORIZED_ACCESS'

    def test_unknown_file(self, client, alice):
        response = client.get('/files/does-not-exist', headers=alice)
        assert response.status_code == 404
        assert response.json()['code'] == 'FILE_NOT_FOUND'

    def test_update(self, client, alice):
        file_id = upload(client, alice).json()['file_id']

        response = client.put(
            f'/files/{file_id}',
            json={'name': 'renamed.txt', 'description': 'updated'},
            headers=alice
        )
        assert response.status_code == 200
        assert response.json()['name'] == 'renamed.txt'
        assert response.json()['description'] == 'updated'
        assert response.json()['content_type'] == 'text/plain'

        download = client.get(f'/files/{file_id}/download', headers=alice)
        assert download.content == b'hello world'

    def test_update_conflict(self, client, alice):
        file_id = upload(client, alice, name='one.txt').json()['file_id']
        upload(client, alice, name='two.txt')

        response = client.put(f'/files/{file_id}', json={'name': 'two.txt'}, headers=alice)
        assert response.status_code == 409
        assert response.json()['code'] == 'FILE_CONFLICT'

    def test_delete(self, client, alice):
        file_id = upload(client, alice).json()['file_id']

        response = client.delete(f'/files/{file_id}', headers=alice)
        assert response.status_code == 204
        assert client.get(f'/files/{file_id}', headers=alice).status_code == 404


class TestErrorMapping:
    """Test engine error to HTTP status mapping."""

    def test_subclass_uses_own_entry(self):
        assert engine_error_response(MalformedInputError("bad frame")) == (401, 'MALFORMED_CONTENT')
        assert engine_error_response(TruncatedStreamError("short")) == (400, 'TRUNCATED_UPLOAD')

    def test_disk_full(self):
        try:
            raise StorageIOError("write failed") from OSError(errno.ENOSPC, "No space left on device")
        except StorageIOError as e:
            assert engine_error_response(e) == (507, 'STORAGE_FULL')

    def test_other_io_error(self):
        assert engine_error_response(StorageIOError("gone")) == (500, 'STORAGE_ERROR')

    def test_not_found(self):
        assert engine_error_response(NotFoundError("x")) == (404, 'FILE_NOT_FOUND')
