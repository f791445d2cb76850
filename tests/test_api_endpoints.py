"""Tests for the storage and synchronization HTTP API."""

import pytest
from fastapi.testclient import TestClient

from common.checksum import digest
from filesync.main import app

OWNER = "owner-a"


@pytest.fixture
def client(test_db, blob_store, scratch_root):
    """Create FastAPI test client backed by a temporary database."""
    return TestClient(app)


def upload(client, name="report.txt", content=b"first draft", owner_id=OWNER):
    response = client.post(
        '/storage/upload/file',
        params={'owner_id': owner_id},
        files={'file': (name, content, 'text/plain')},
    )
    assert response.status_code == 200
    return response.json()['data']


def test_root_endpoint(client):
    """Test health check endpoint."""
    response = client.get('/')
    assert response.status_code == 200
    assert response.json()['status'] == 'running'


def test_health_and_ready(client):
    assert client.get('/health').json()['status'] == 'healthy'

    response = client.get('/ready')
    assert response.status_code == 200
    assert response.json() == {'ready': True, 'database': 'ok'}


def test_request_id_header(client):
    response = client.get('/')
    assert response.headers.get('X-Request-ID')


def test_owner_id_required(client):
    response = client.get('/storage/list')
    assert response.status_code == 422


def test_upload_file(client):
    """Test single file upload returns the stored metadata."""
    data = upload(client)

    assert data['file_name'] == 'report.txt'
    assert data['size'] == len(b'first draft')
    assert data['checksum'] == digest(b'first draft')


def test_upload_file_rejects_zip(client, zip_factory):
    response = client.post(
        '/storage/upload/file',
        params={'owner_id': OWNER},
        files={'file': ('bundle.zip', zip_factory({'a.txt': b'1'}), 'application/zip')},
    )

    assert response.status_code == 400
    assert response.json() == {
        'status': False,
        'message': 'Zip files are not allowed for this endpoint.',
        'code': 'VALIDATION_ERROR',
    }


def test_upload_file_too_large(client, monkeypatch):
    monkeypatch.setattr('filesync.config.MAX_UPLOAD_BYTES', 3)

    response = client.post(
        '/storage/upload/file',
        params={'owner_id': OWNER},
        files={'file': ('big.txt', b'four', 'text/plain')},
    )

    assert response.status_code == 413
    assert response.json()['code'] == 'PAYLOAD_TOO_LARGE'


def test_upload_archive(client, zip_factory):
    response = client.post(
        '/storage/upload/archive',
        params={'owner_id': OWNER},
        files={'archive': ('photos.zip', zip_factory({'b.jpg': b'bb', 'a.jpg': b'a'}), 'application/zip')},
    )

    assert response.status_code == 200
    names = [item['file_name'] for item in response.json()['data']]
    assert names == ['a.jpg', 'b.jpg']


def test_upload_archive_invalid(client):
    response = client.post(
        '/storage/upload/archive',
        params={'owner_id': OWNER},
        files={'archive': ('broken.zip', b'not really a zip', 'application/zip')},
    )

    assert response.status_code == 400
    assert response.json()['code'] == 'INVALID_ARCHIVE'


def test_list_files_is_owner_scoped(client):
    upload(client, 'mine.txt')
    upload(client, 'theirs.txt', owner_id='owner-b')

    response = client.get('/storage/list', params={'owner_id': OWNER, 'page': 1, 'page_size': 10})

    body = response.json()
    assert [item['file_name'] for item in body['data']] == ['mine.txt']
    assert body['pagination'] == {'page': 1, 'page_size': 10, 'total_files': 1, 'total_pages': 1}


def test_download_and_checksum(client):
    data = upload(client, content=b'downloadable')

    download = client.get(f"/storage/files/{data['file_id']}/download", params={'owner_id': OWNER})
    assert download.status_code == 200
    assert download.content == b'downloadable'
    assert 'report.txt' in download.headers['content-disposition']

    checksum = client.get(f"/storage/files/{data['file_id']}/checksum", params={'owner_id': OWNER})
    assert checksum.json()['data'] == {'file_id': data['file_id'], 'checksum': digest(b'downloadable')}


def test_get_file_metadata(client):
    data = upload(client)

    response = client.get(f"/storage/files/{data['file_id']}", params={'owner_id': OWNER})

    assert response.status_code == 200
    assert response.json() == data
    assert client.get(f"/storage/files/{data['file_id']}", params={'owner_id': 'owner-b'}).status_code == 404


def test_download_other_owner_is_not_found(client):
    data = upload(client)

    response = client.get(f"/storage/files/{data['file_id']}/download", params={'owner_id': 'owner-b'})

    assert response.status_code == 404
    assert response.json()['code'] == 'FILE_NOT_FOUND'


def test_update_file(client):
    data = upload(client)

    response = client.post(
        '/storage/update/file',
        params={'owner_id': OWNER, 'file_id': data['file_id']},
        files={'file': ('report.txt', b'second draft', 'text/plain')},
    )

    assert response.status_code == 200
    assert response.json()['data']['checksum'] == digest(b'second draft')


def test_update_archive_reports_changes(client, zip_factory):
    first = client.post(
        '/storage/update/archive/bundle-1',
        params={'owner_id': OWNER},
        files={'archive': ('bundle.zip', zip_factory({'a.txt': b'1'}), 'application/zip')},
    )
    assert first.json()['message'] == 'File updated successfully.'

    same = client.post(
        '/storage/update/archive/bundle-1',
        params={'owner_id': OWNER},
        files={'archive': ('bundle.zip', zip_factory({'a.txt': b'1'}), 'application/zip')},
    )
    assert same.json()['message'] == 'No changes detected.'
    assert same.json()['data']['changed'] is False
    assert same.json()['data']['metadata'] is None

    changed = client.post(
        '/storage/update/archive/bundle-1',
        params={'owner_id': OWNER},
        files={'archive': ('bundle.zip', zip_factory({'a.txt': b'2', 'b.txt': b'3'}), 'application/zip')},
    )
    assert changed.json()['data']['changes'] == {'added': ['b.txt'], 'deleted': [], 'modified': ['a.txt']}


def test_delete_file(client):
    data = upload(client)

    response = client.delete(f"/storage/delete/{data['file_id']}", params={'owner_id': OWNER})
    assert response.json() == {'status': True, 'message': 'File deleted successfully.'}

    again = client.delete(f"/storage/delete/{data['file_id']}", params={'owner_id': OWNER})
    assert again.status_code == 404


def test_synchronize_up_to_date(client):
    data = upload(client)

    response = client.post(
        '/storage/synchronize',
        params={'owner_id': OWNER},
        json=[{'file_id': data['file_id'], 'last_updated': data['last_updated'], 'checksum': data['checksum']}],
    )

    assert response.status_code == 200
    assert response.json()['message'] == 'No files need to be uploaded.'
    assert response.json()['data'] is None


def test_synchronize_empty_list(client):
    response = client.post('/storage/synchronize', params={'owner_id': OWNER}, json=[])

    assert response.status_code == 400
    assert response.json()['message'] == 'No files provided for synchronization.'


def test_full_synchronization_round(client, zip_factory):
    """Test evaluate, partial upload, final upload and replay of a sync session."""
    first = upload(client, 'a.txt', b'server a')
    second = upload(client, 'b.txt', b'server b')

    evaluation = client.post(
        '/storage/synchronize',
        params={'owner_id': OWNER},
        json=[
            {'file_id': first['file_id'], 'last_updated': '2000-01-01T00:00:00Z', 'checksum': 'stale'},
            {'file_id': second['file_id'], 'last_updated': '2000-01-01T00:00:00Z'},
        ],
    ).json()['data']

    sync_id = evaluation['synchronization_id']
    assert {item['file_name'] for item in evaluation['files_to_upload']} == {'a.txt', 'b.txt'}

    incomplete = client.get('/storage/sync/incomplete', params={'owner_id': OWNER}).json()['data']
    assert [item['synchronization_id'] for item in incomplete] == [sync_id]

    partial = client.post(
        '/storage/upload/sync',
        params={'owner_id': OWNER, 'synchronization_id': sync_id},
        files={'archive': ('sync.zip', zip_factory({'a.txt': b'client a'}), 'application/zip')},
    ).json()
    assert partial['message'] == 'File synchronization incomplete.'
    assert partial['data']['pending_files'] == [{'file_id': second['file_id'], 'file_name': 'b.txt'}]

    final = client.post(
        '/storage/upload/sync',
        params={'owner_id': OWNER, 'synchronization_id': sync_id},
        files={'archive': ('sync.zip', zip_factory({'b.txt': b'client b'}), 'application/zip')},
    ).json()
    assert final['message'] == 'File synchronization completed.'
    assert final['data']['completed'] is True

    checksum = client.get(f"/storage/files/{first['file_id']}/checksum", params={'owner_id': OWNER})
    assert checksum.json()['data']['checksum'] == digest(b'client a')

    replay = client.post(
        '/storage/upload/sync',
        params={'owner_id': OWNER, 'synchronization_id': sync_id},
        files={'archive': ('sync.zip', zip_factory({'b.txt': b'client b'}), 'application/zip')},
    )
    assert replay.status_code == 404
    assert replay.json()['code'] == 'SYNC_NOT_FOUND'

    assert client.get('/storage/sync/incomplete', params={'owner_id': OWNER}).json()['data'] == []


def test_upload_sync_requires_zip(client):
    response = client.post(
        '/storage/upload/sync',
        params={'owner_id': OWNER, 'synchronization_id': 'anything'},
        files={'archive': ('sync.tar', b'data', 'application/x-tar')},
    )

    assert response.status_code == 400
    assert response.json()['message'] == 'Only zip files are allowed.'
