"""Tests for the transfer API endpoints."""

import os
from urllib.parse import quote

import pytest
from fastapi.testclient import TestClient

from transfer import service_locator
from transfer.main import app
from transfer.routes.file_routes import _content_disposition


@pytest.fixture
def client(chunk_store, ledger, events, monkeypatch):
    """Create FastAPI test client wired to in-memory collaborators."""
    monkeypatch.setattr("transfer.config.CHUNK_SIZE", 1024)
    service_locator.set_chunk_store(chunk_store)
    service_locator.set_ledger(ledger)
    service_locator.set_event_emitter(events)
    yield TestClient(app)
    service_locator.set_chunk_store(None)
    service_locator.set_ledger(None)
    service_locator.set_event_emitter(None)


def _upload(client, content: bytes, name: str = "report.bin"):
    return client.post("/upload", files={"file": (name, content, "application/octet-stream")})


def test_root_endpoint(client):
    response = client.get('/')
    assert response.status_code == 200
    assert response.json()['status'] == 'running'


def test_health_endpoint(client):
    response = client.get('/health')
    assert response.status_code == 200
    assert response.json()['status'] == 'healthy'


def test_ready_endpoint(client):
    response = client.get('/ready')
    assert response.status_code == 200
    assert response.json()['ready'] is True


def test_ready_without_collaborators():
    response = TestClient(app).get('/ready')
    assert response.status_code == 503


def test_request_id_header(client):
    response = client.get('/health')
    assert response.headers.get('X-Request-ID')


class TestUpload:

    def test_upload_response_shape(self, client):
        data = os.urandom(2500)
        response = _upload(client, data)

        assert response.status_code == 200
        body = response.json()
        assert body['filename'] == 'report.bin'
        assert body['size'] == 2500
        assert body['chunk_count'] == 3
        assert body['status'] == 'completed'
        assert [c['index'] for c in body['chunks']] == [0, 1, 2]
        assert [c['size'] for c in body['chunks']] == [1024, 1024, 452]
        first = body['chunks'][0]
        assert set(first) == {'id', 'file_id', 'index', 'size', 'checksum', 'created_at'}
        assert first['id'] == f"{body['file_id']}_chunk_0"
        assert len(first['checksum']) == 64

    def test_upload_without_file(self, client):
        response = client.post('/upload', data={'other': 'value'})
        assert response.status_code == 400
        assert set(response.json()) == {'detail'}

    def test_upload_store_failure(self, client, chunk_store):
        chunk_store.fail_after_puts = 1
        response = _upload(client, os.urandom(3000))

        assert response.status_code == 500
        assert 'detail' in response.json()

        listing = client.get('/files').json()
        assert listing['count'] == 1
        assert listing['files'][0]['status'] == 'failed'


class TestDownload:

    def test_round_trip(self, client):
        data = os.urandom(5000)
        file_id = _upload(client, data).json()['file_id']

        response = client.get(f'/download/{file_id}')

        assert response.status_code == 200
        assert response.content == data
        assert response.headers['content-type'] == 'application/octet-stream'
        assert response.headers['content-length'] == '5000'
        assert 'attachment' in response.headers['content-disposition']
        assert 'report.bin' in response.headers['content-disposition']

    def test_non_ascii_file_name(self, client):
        data = os.urandom(1500)
        file_id = _upload(client, data, name='отчёт.bin').json()['file_id']

        response = client.get(f'/download/{file_id}')

        assert response.status_code == 200
        assert response.content == data
        disposition = response.headers['content-disposition']
        assert disposition.startswith('attachment; filename="_____.bin"')
        assert f"filename*=UTF-8''{quote('отчёт.bin', safe='')}" in disposition

    def test_quotes_and_control_characters_in_file_name(self):
        disposition = _content_disposition('say "hi"\r\n.bin')

        assert disposition.startswith('attachment; filename="say _hi___.bin";')
        assert disposition.endswith("filename*=UTF-8''say%20%22hi%22%0D%0A.bin")

    def test_zero_byte_file(self, client):
        file_id = _upload(client, b'', name='empty.txt').json()['file_id']

        response = client.get(f'/download/{file_id}')

        assert response.status_code == 200
        assert response.content == b''
        assert response.headers['content-length'] == '0'

    def test_unknown_file(self, client, chunk_store):
        response = client.get('/download/file_does_not_exist')

        assert response.status_code == 404
        assert chunk_store.total_calls == 0

    def test_missing_chunk_before_first_byte(self, client, chunk_store):
        file_id = _upload(client, os.urandom(3000)).json()['file_id']
        del chunk_store.objects[f'{file_id}_chunk_1']

        response = client.get(f'/download/{file_id}')

        assert response.status_code == 500

    def test_stream_endpoint(self, client):
        data = os.urandom(1500)
        file_id = _upload(client, data).json()['file_id']

        response = client.get(f'/stream/{file_id}')

        assert response.status_code == 200
        assert response.content == data

    def test_stream_rejects_range(self, client):
        file_id = _upload(client, b'abc').json()['file_id']

        response = client.get(f'/stream/{file_id}', headers={'Range': 'bytes=0-1'})

        assert response.status_code == 501


class TestFileMetadata:

    def test_status(self, client):
        file_id = _upload(client, b'hello').json()['file_id']

        response = client.get(f'/status/{file_id}')

        assert response.status_code == 200
        body = response.json()
        assert body['file_id'] == file_id
        assert body['status'] == 'completed'
        assert body['file_size'] == 5
        assert body['user_id'] == 'anonymous'

    def test_status_unknown(self, client):
        assert client.get('/status/file_nope').status_code == 404

    def test_info(self, client):
        file_id = _upload(client, b'hello').json()['file_id']

        body = client.get(f'/info/{file_id}').json()

        assert body['download_url'] == f'/download/{file_id}'
        assert body['chunk_count'] == 1

    def test_info_unknown(self, client):
        assert client.get('/info/file_nope').status_code == 404

    def test_list_files_with_status_filter(self, client, chunk_store):
        _upload(client, b'ok')
        chunk_store.fail_after_puts = chunk_store.put_calls
        _upload(client, b'broken')

        completed = client.get('/files', params={'status': 'completed'}).json()
        failed = client.get('/files', params={'status': 'failed'}).json()

        assert completed['count'] == 1
        assert failed['count'] == 1

    def test_delete_file(self, client, chunk_store, events):
        file_id = _upload(client, os.urandom(2048)).json()['file_id']

        response = client.delete(f'/files/{file_id}')

        assert response.status_code == 200
        assert response.json()['file_id'] == file_id
        assert chunk_store.objects == {}
        assert client.get(f'/status/{file_id}').status_code == 404
        assert events.types[-1] == 'file.deleted'

    def test_delete_unknown(self, client):
        assert client.delete('/files/file_nope').status_code == 404
