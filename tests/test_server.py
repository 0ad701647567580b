import pytest
import requests

from ipfs_drive.client.config import Config
from ipfs_drive.client.documents import DocumentStore
from ipfs_drive.client.errors import (
    FetchFailure,
    MetadataPersistFailure,
    RecordNotFound,
    StorageUploadFailure,
    UnpinFailure,
)
from ipfs_drive.client.records import FileRecord
from ipfs_drive.client.service import FileService
from ipfs_drive.client.storage import PinningClient
from ipfs_drive.server.server import content_id


def make_record(name="notes.txt", owner="alice", size=5, file_type="document", users=()):
    return FileRecord(
        name=name,
        url="http://drive.test/ipfs/bafk",
        bucket_file_id="bafk",
        owner=owner,
        users=list(users),
        size=size,
        type=file_type,
        extension=name.rsplit(".", 1)[-1],
        encryption_key="a2V5",
        iv="aXY=",
        auth_tag="dGFn",
    )


def test_content_id_is_stable():
    assert content_id(b"abc") == content_id(b"abc")
    assert content_id(b"abc") != content_id(b"abd")
    assert content_id(b"abc").startswith("b")


def test_pin_fetch_unpin(pinning):
    cid = pinning.pin(b"\x00ciphertext\xff", filename="a.enc")
    assert cid == content_id(b"\x00ciphertext\xff")
    assert pinning.fetch(pinning.gateway_url(cid)) == b"\x00ciphertext\xff"

    pinning.unpin(cid)
    with pytest.raises(FetchFailure):
        pinning.fetch(pinning.gateway_url(cid))
    with pytest.raises(UnpinFailure):
        pinning.unpin(cid)


def test_pin_empty_blob(pinning):
    cid = pinning.pin(b"")
    assert pinning.fetch(pinning.gateway_url(cid)) == b""


def test_pin_requires_jwt(config, session):
    client = PinningClient(Config.local("http://drive.test", pinata_jwt="wrong"), session=session)
    with pytest.raises(StorageUploadFailure):
        client.pin(b"data")


def test_pin_network_error(config):
    session = requests.Session()

    def refuse(*args, **kwargs):
        raise requests.exceptions.ConnectionError("connection refused")

    session.post = refuse
    with pytest.raises(StorageUploadFailure) as excinfo:
        PinningClient(config, session=session).pin(b"data")
    assert isinstance(excinfo.value.__cause__, requests.exceptions.ConnectionError)


def test_document_crud(documents):
    created = documents.create(make_record(users=["bob"]))
    assert created.id
    assert created.created_at
    assert created.users == ["bob"]

    fetched = documents.get(created.id)
    assert fetched == created

    assert documents.rename(created.id, "renamed.txt").name == "renamed.txt"
    updated = documents.update_users(created.id, ["carol"])
    assert updated.users == ["carol"]
    assert updated.name == "renamed.txt"
    assert updated.encryption_key == "a2V5"

    documents.delete(created.id)
    with pytest.raises(RecordNotFound):
        documents.get(created.id)
    with pytest.raises(RecordNotFound):
        documents.delete(created.id)


def test_document_update_rejects_immutable_fields(documents, session, config):
    created = documents.create(make_record())
    response = session.patch(
        f"{config.documents_url}/{created.id}",
        json={"data": {"encryptionKey": "b3RoZXI="}},
    )
    assert response.status_code == 400
    assert documents.get(created.id).encryption_key == "a2V5"


def test_document_rename_rejects_blank(documents):
    created = documents.create(make_record())
    with pytest.raises(MetadataPersistFailure):
        documents.rename(created.id, " ")


def test_document_list(documents):
    documents.create(make_record("b.txt", size=3))
    documents.create(make_record("a.png", size=9, file_type="image"))
    documents.create(make_record("C.txt", size=1))
    documents.create(make_record("shared.txt", owner="bob", users=["alice"]))
    documents.create(make_record("hidden.txt", owner="bob"))

    names = [r.name for r in documents.list("alice", sort="name-asc")]
    assert names == ["a.png", "b.txt", "C.txt", "shared.txt"]

    by_size = [r.name for r in documents.list("alice", sort="size-desc", limit=2)]
    assert by_size == ["a.png", "shared.txt"]

    images = documents.list("alice", types=["image", "video"])
    assert [r.name for r in images] == ["a.png"]

    found = documents.list("alice", search="SHA")
    assert [r.name for r in found] == ["shared.txt"]

    assert [r.name for r in documents.list("bob", sort="name-desc")] == ["shared.txt", "hidden.txt"]


def test_end_to_end(config, session):
    service = FileService(
        config,
        storage=PinningClient(config, session=session),
        documents=DocumentStore(config, session=session),
    )
    record = service.upload_file(b"hello world", "hello.txt", "alice")
    assert record.url.startswith(config.gateway_url)

    # the gateway serves ciphertext only
    assert session.get(record.url).content != b"hello world"
    assert service.open_file(record.id).data == b"hello world"

    service.update_file_users(record.id, ["bob"])
    assert [r.id for r in service.get_files("bob")] == [record.id]

    service.delete_file(record.id, record.bucket_file_id)
    assert service.get_files("alice") == []
    assert session.get(record.url).status_code == 404


def test_document_credentials_stay_off_pinning_requests(config, session):
    documents = DocumentStore(config, session=session)
    pinning = PinningClient(config, session=session)
    created = documents.create(make_record())
    documents.get(created.id)
    pinning.pin(b"ciphertext")

    assert "X-Appwrite-Key" not in session.headers
    sent = session.get_adapter(config.pin_url).sent
    pin_requests = [r for r in sent if r.url == config.pin_url]
    document_requests = [r for r in sent if r.url.startswith(config.documents_url)]
    assert pin_requests and document_requests
    assert all("X-Appwrite-Key" not in r.headers for r in pin_requests)
    assert all(r.headers["X-Appwrite-Key"] == "secret" for r in document_requests)


def unreadable_session(body):
    session = requests.Session()

    def reply(method, url, **kwargs):
        response = requests.Response()
        response.status_code = 201
        response._content = body
        response.url = url
        return response

    session.request = reply
    return session


@pytest.mark.parametrize("body", [b"<html>created</html>", b"[1, 2]", b'"ok"'])
def test_create_with_unreadable_reply(config, body):
    documents = DocumentStore(config, session=unreadable_session(body))
    with pytest.raises(MetadataPersistFailure):
        documents.create(make_record())


def test_unreadable_reply_still_unpins_blob(config, memory_storage):
    service = FileService(
        config,
        storage=memory_storage,
        documents=DocumentStore(config, session=unreadable_session(b"not json")),
    )
    with pytest.raises(MetadataPersistFailure):
        service.upload_file(b"hello world", "hello.txt", "alice")
    assert memory_storage.blobs == {}
    assert len(memory_storage.unpinned) == 1
