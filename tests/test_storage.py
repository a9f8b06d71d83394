from unittest.mock import MagicMock

import pytest

from dealdesk.storage import StorageClient, StorageError


@pytest.fixture
def session():
    fake = MagicMock()
    fake.headers = {}
    fake.post.return_value.ok = True
    fake.get.return_value.ok = True
    return fake


@pytest.fixture
def storage_client(session):
    return StorageClient(base_url="http://s.test", api_key="k", session=session)


def test_upload_encodes_object_key(storage_client, session):
    path = storage_client.upload("report-files", "c1/r1/Board pack #2.pdf", b"%PDF")

    assert path == "c1/r1/Board pack #2.pdf"
    url = session.post.call_args.args[0]
    assert url == "http://s.test/storage/v1/object/report-files/c1/r1/Board%20pack%20%232.pdf"
    assert session.post.call_args.kwargs["headers"]["x-upsert"] == "false"
    assert session.headers["apikey"] == "k"


def test_download_and_sign_encode_object_key(storage_client, session):
    session.get.return_value.content = b"data"
    assert storage_client.download("docs", "a/what?.txt") == b"data"
    assert session.get.call_args.args[0] == "http://s.test/storage/v1/object/docs/a/what%3F.txt"

    session.post.return_value.json.return_value = {"signedURL": "/object/sign/docs/a/x?token=t"}
    url = storage_client.create_signed_url("docs", "a/50% off.pdf")
    assert session.post.call_args.args[0] == "http://s.test/storage/v1/object/sign/docs/a/50%25%20off.pdf"
    assert url == "http://s.test/storage/v1/object/sign/docs/a/x?token=t"


def test_failed_upload_raises(storage_client, session):
    session.post.return_value.ok = False
    session.post.return_value.status_code = 400
    session.post.return_value.text = "bad"
    with pytest.raises(StorageError, match="400"):
        storage_client.upload("docs", "a.pdf", b"")
