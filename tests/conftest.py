from urllib.parse import urlsplit

import pytest
import requests
from requests.adapters import BaseAdapter
from requests.structures import CaseInsensitiveDict

from ipfs_drive.client.config import Config
from ipfs_drive.client.documents import DocumentStore, parse_sort
from ipfs_drive.client.errors import (
    DocumentStoreError,
    FetchFailure,
    MetadataPersistFailure,
    RecordNotFound,
    StorageUploadFailure,
    UnpinFailure,
)
from ipfs_drive.client.records import FileRecord
from ipfs_drive.client.storage import PinningClient
from ipfs_drive.server.server import content_id, create_app

SERVER_URL = "http://drive.test"
JWT = "test-jwt"


class FlaskAdapter(BaseAdapter):
    """Sends requests to a Flask app's test client instead of the network."""

    def __init__(self, app):
        super().__init__()
        self.client = app.test_client()
        self.sent = []

    def send(self, request, **kwargs):
        self.sent.append(request)
        parsed = urlsplit(request.url)
        body = request.body
        if isinstance(body, str):
            body = body.encode("utf-8")
        resp = self.client.open(
            parsed.path,
            method=request.method,
            query_string=parsed.query,
            headers=list(request.headers.items()),
            data=body,
        )

        response = requests.Response()
        response.status_code = resp.status_code
        response.reason = resp.status.split(" ", 1)[1] if " " in resp.status else ""
        response.headers = CaseInsensitiveDict(dict(resp.headers))
        response._content = resp.get_data()
        response.url = request.url
        response.request = request
        return response

    def close(self):
        pass


@pytest.fixture
def app(tmp_path):
    app = create_app(str(tmp_path / "storage"), jwt=JWT)
    app.config["TESTING"] = True
    return app


@pytest.fixture
def config():
    return Config.local(SERVER_URL, pinata_jwt=JWT, project_id="drive-test", api_key="secret")


@pytest.fixture
def session(app):
    session = requests.Session()
    session.mount(SERVER_URL, FlaskAdapter(app))
    return session


@pytest.fixture
def pinning(config, session):
    return PinningClient(config, session=session)


@pytest.fixture
def documents(config, session):
    return DocumentStore(config, session=session)


class MemoryStorage:
    """In-memory pinning service with switchable failures."""

    def __init__(self):
        self.blobs = {}
        self.fail_pin = False
        self.fail_unpin = False
        self.fail_fetch = False
        self.unpinned = []

    def gateway_url(self, cid):
        return f"memory://ipfs/{cid}"

    def pin(self, blob, filename="file.bin"):
        if self.fail_pin:
            raise StorageUploadFailure("pin refused")
        cid = content_id(blob)
        self.blobs[cid] = bytes(blob)
        return cid

    def unpin(self, cid):
        if self.fail_unpin:
            raise UnpinFailure("unpin refused", cid)
        self.unpinned.append(cid)
        self.blobs.pop(cid, None)

    def fetch(self, url):
        if self.fail_fetch:
            raise FetchFailure("gateway down")
        cid = url.rsplit("/", 1)[-1]
        if cid not in self.blobs:
            raise FetchFailure(f"{cid} not pinned")
        return self.blobs[cid]


class MemoryDocuments:
    """In-memory document store keeping the same record semantics as the real one."""

    def __init__(self):
        self.docs = {}
        self.fail_create = False
        self.fail_delete = False
        self._counter = 0

    def create(self, record):
        if self.fail_create:
            raise MetadataPersistFailure("create refused")
        self._counter += 1
        doc = record.to_document()
        doc["$id"] = f"{self._counter:032x}"
        doc["$createdAt"] = f"2026-01-01T00:00:{self._counter:02d}.000Z"
        self.docs[doc["$id"]] = doc
        return FileRecord.from_document(doc)

    def _doc(self, record_id):
        if record_id not in self.docs:
            raise RecordNotFound(record_id)
        return self.docs[record_id]

    def get(self, record_id):
        return FileRecord.from_document(self._doc(record_id))

    def rename(self, record_id, name):
        self._doc(record_id)["name"] = name
        return self.get(record_id)

    def update_users(self, record_id, users):
        self._doc(record_id)["users"] = list(users)
        return self.get(record_id)

    def delete(self, record_id):
        self._doc(record_id)
        if self.fail_delete:
            raise DocumentStoreError("delete refused")
        del self.docs[record_id]

    def list(self, owner, types=(), search="", sort="", limit=None):
        field_name, descending = parse_sort(sort)
        records = [
            self.get(doc_id) for doc_id, doc in self.docs.items()
            if doc["owner"] == owner or owner in doc["users"]
        ]
        records = [r for r in records if not types or r.type in types]
        records = [r for r in records if search.lower() in r.name.lower()]
        attr = {"$createdAt": "created_at", "name": "name", "size": "size"}[field_name]
        records.sort(key=lambda r: getattr(r, attr), reverse=descending)
        return records[:limit] if limit else records


@pytest.fixture
def memory_storage():
    return MemoryStorage()


@pytest.fixture
def memory_documents():
    return MemoryDocuments()
