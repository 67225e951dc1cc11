"""
test_storage.py — Tests for services/storage.py

Local backend against a temp dir; S3 backend against a mocked boto3 client.

Called by: pytest
Depends on: tradedesk/services/storage.py
"""

import io
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from tradedesk.exceptions import StorageError
from tradedesk.services.storage import LocalObjectStorage, S3ObjectStorage


def test_local_put_get_delete(storage):
    url = storage.put("documents/abc/file.pdf", b"%PDF", "application/pdf")
    assert url == "https://files.mte-trading.com/documents/abc/file.pdf"
    assert storage.get("documents/abc/file.pdf") == b"%PDF"
    storage.delete("documents/abc/file.pdf")
    with pytest.raises(StorageError):
        storage.get("documents/abc/file.pdf")


def test_local_delete_missing_is_noop(storage):
    storage.delete("documents/never-written.pdf")


def test_local_file_uri_without_base_url(tmp_path):
    store = LocalObjectStorage(tmp_path)
    assert store.put("a/b.txt", b"x").startswith("file://")


@pytest.mark.parametrize("key", ["", "   ", "../etc/passwd", "documents/../../x"])
def test_rejects_bad_keys(storage, key):
    with pytest.raises(StorageError):
        storage.put(key, b"x")


def _client_error(op):
    return ClientError({"Error": {"Code": "AccessDenied", "Message": "denied"}}, op)


def test_s3_put_uses_public_read():
    client = MagicMock()
    store = S3ObjectStorage("mte-docs", client=client)

    url = store.put("documents/x/file.xlsx", b"data", "application/xlsx")

    assert url == "https://mte-docs.s3.amazonaws.com/documents/x/file.xlsx"
    client.put_object.assert_called_once_with(
        Bucket="mte-docs",
        Key="documents/x/file.xlsx",
        Body=b"data",
        ContentType="application/xlsx",
        ACL="public-read",
    )


def test_s3_url_prefers_public_base_then_endpoint():
    client = MagicMock()
    assert S3ObjectStorage("b", public_base_url="https://cdn.mte-trading.com/", client=client).url_for(
        "k.pdf"
    ) == "https://cdn.mte-trading.com/k.pdf"
    assert S3ObjectStorage("b", endpoint_url="https://s3.example.net", client=client).url_for(
        "k.pdf"
    ) == "https://s3.example.net/b/k.pdf"


def test_s3_get_reads_body():
    client = MagicMock()
    client.get_object.return_value = {"Body": io.BytesIO(b"img")}
    assert S3ObjectStorage("b", client=client).get("images/1.png") == b"img"


def test_s3_errors_become_storage_errors():
    client = MagicMock()
    client.put_object.side_effect = _client_error("PutObject")
    client.get_object.side_effect = _client_error("GetObject")
    client.delete_object.side_effect = _client_error("DeleteObject")
    store = S3ObjectStorage("b", client=client)

    with pytest.raises(StorageError):
        store.put("k", b"x")
    with pytest.raises(StorageError):
        store.get("k")
    with pytest.raises(StorageError):
        store.delete("k")
