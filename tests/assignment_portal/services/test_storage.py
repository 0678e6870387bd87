import pytest
from botocore.exceptions import ClientError

from assignment_portal.services.storage import (
    NullSubmissionStorage,
    S3SubmissionStorage,
    StorageError,
    build_object_key,
)


class FakeS3Client:
    def __init__(self, fail_with: Exception | None = None) -> None:
        self.fail_with = fail_with
        self.put_calls: list[dict] = []
        self.presign_calls: list[dict] = []
        self.deleted: list[str] = []
        self.closed = False

    def put_object(self, **kwargs) -> dict:
        if self.fail_with is not None:
            raise self.fail_with
        self.put_calls.append(kwargs)
        return {'ETag': '"abc"'}

    def generate_presigned_url(self, ClientMethod, Params, ExpiresIn) -> str:
        self.presign_calls.append({'method': ClientMethod, 'params': Params, 'expires': ExpiresIn})
        return f'https://bucket.example.com/{Params["Key"]}?sig={len(self.presign_calls)}'

    def delete_object(self, Bucket, Key) -> None:
        self.deleted.append(Key)

    def close(self) -> None:
        self.closed = True


def test_object_key_is_scoped_by_assignment_and_student(monkeypatch) -> None:
    monkeypatch.setattr('assignment_portal.core.config.STORAGE_KEY_PREFIX', 'submissions')

    assert build_object_key(3, 7, 'abc123', '王小明.pdf') == 'submissions/3/7/abc123/王小明.pdf'


def test_object_key_without_prefix(monkeypatch) -> None:
    monkeypatch.setattr('assignment_portal.core.config.STORAGE_KEY_PREFIX', '')

    assert build_object_key(3, 7, 'abc123', '王小明.pdf') == '3/7/abc123/王小明.pdf'


def test_upload_puts_object_and_presigns_links() -> None:
    client = FakeS3Client()
    storage = S3SubmissionStorage(client, 'homework', link_expires_seconds=600)

    stored = storage.upload('3/7/abc/王小明.pdf', b'%PDF-1.4', 'application/pdf')

    assert client.put_calls == [
        {
            'Bucket': 'homework',
            'Key': '3/7/abc/王小明.pdf',
            'Body': b'%PDF-1.4',
            'ContentType': 'application/pdf',
        }
    ]
    share, direct = client.presign_calls
    assert share['method'] == direct['method'] == 'get_object'
    assert share['expires'] == 600
    assert share['params']['ResponseContentDisposition'].startswith("attachment; filename*=UTF-8''")
    assert direct['params']['ResponseContentDisposition'] == 'inline'
    assert stored.key == '3/7/abc/王小明.pdf'
    assert stored.share_link.endswith('sig=1')
    assert stored.direct_link.endswith('sig=2')


def test_public_base_url_skips_presigning() -> None:
    client = FakeS3Client()
    storage = S3SubmissionStorage(client, 'homework', public_base_url='https://cdn.example.com/')

    stored = storage.upload('3/7/abc/report.pdf', b'%PDF-1.4', 'application/pdf')

    assert client.presign_calls == []
    assert stored.share_link == stored.direct_link == 'https://cdn.example.com/3/7/abc/report.pdf'


def test_client_error_becomes_storage_error() -> None:
    error = ClientError({'Error': {'Code': 'NoSuchBucket', 'Message': 'missing'}}, 'PutObject')
    storage = S3SubmissionStorage(FakeS3Client(fail_with=error), 'homework')

    with pytest.raises(StorageError):
        storage.upload('3/7/abc/report.pdf', b'%PDF-1.4', 'application/pdf')


def test_delete_and_close_reach_the_client() -> None:
    client = FakeS3Client()
    storage = S3SubmissionStorage(client, 'homework')

    storage.delete('3/7/abc/report.pdf')
    storage.close()

    assert client.deleted == ['3/7/abc/report.pdf']
    assert client.closed


def test_null_storage_refuses_uploads() -> None:
    storage = NullSubmissionStorage()

    with pytest.raises(StorageError, match='not configured'):
        storage.upload('key', b'%PDF', 'application/pdf')
    storage.close()
