import logging
from typing import List

import requests

from .errors import DocumentStoreError, MetadataPersistFailure, RecordNotFound
from .records import FileRecord

logger = logging.getLogger(__name__)

SORT_FIELDS = ("$createdAt", "name", "size")


def parse_sort(sort):
    """Split "field-direction" into (field, descending). Empty means newest first."""
    if not sort:
        return "$createdAt", True
    field_name, _, direction = sort.rpartition("-")
    if not field_name:
        field_name, direction = direction, "desc"
    if field_name not in SORT_FIELDS or direction not in ("asc", "desc"):
        raise ValueError(f"Unsupported sort {sort!r}")
    return field_name, direction == "desc"


class DocumentStore:
    """File records collection in the document database."""

    def __init__(self, config, session=None):
        self.config = config
        self.session = session or requests.Session()
        # sent per request, never set on a session the pinning client may share
        self.headers = {
            "X-Appwrite-Project": config.project_id,
            "X-Appwrite-Key": config.api_key,
        }

    def _url(self, record_id=None):
        base = self.config.documents_url
        return base if record_id is None else f"{base}/{record_id}"

    def _request(self, method, url, error=DocumentStoreError, **kwargs):
        kwargs.setdefault("timeout", self.config.request_timeout)
        kwargs["headers"] = {**self.headers, **kwargs.get("headers", {})}
        try:
            response = self.session.request(method, url, **kwargs)
        except requests.exceptions.RequestException as e:
            raise error(f"Document store unreachable: {e}") from e
        if response.status_code == 404:
            raise RecordNotFound(f"No file record at {url}")
        try:
            response.raise_for_status()
        except requests.exceptions.HTTPError as e:
            raise error(f"Document store rejected {method} {url}: {e}") from e
        return response

    def _record(self, response, error=DocumentStoreError):
        try:
            return FileRecord.from_document(response.json())
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            raise error(f"Document store returned an unreadable record: {e}") from e

    def create(self, record: FileRecord) -> FileRecord:
        response = self._request(
            "POST", self._url(), error=MetadataPersistFailure,
            json={"data": record.to_document()},
        )
        return self._record(response, error=MetadataPersistFailure)

    def get(self, record_id) -> FileRecord:
        return self._record(self._request("GET", self._url(record_id)))

    def rename(self, record_id, name) -> FileRecord:
        response = self._request(
            "PATCH", self._url(record_id), error=MetadataPersistFailure,
            json={"data": {"name": name}},
        )
        return self._record(response, error=MetadataPersistFailure)

    def update_users(self, record_id, users) -> FileRecord:
        response = self._request(
            "PATCH", self._url(record_id), error=MetadataPersistFailure,
            json={"data": {"users": list(users)}},
        )
        return self._record(response, error=MetadataPersistFailure)

    def delete(self, record_id):
        self._request("DELETE", self._url(record_id))

    def list(self, owner, types=(), search="", sort="", limit=None) -> List[FileRecord]:
        field_name, descending = parse_sort(sort)
        params = {
            "owner": owner,
            "type": list(types),
            "search": search,
            "orderBy": field_name,
            "order": "desc" if descending else "asc",
        }
        if limit:
            params["limit"] = int(limit)
        response = self._request("GET", self._url(), params=params)
        try:
            return [FileRecord.from_document(doc) for doc in response.json()["documents"]]
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            raise DocumentStoreError(f"Document store returned an unreadable listing: {e}") from e
