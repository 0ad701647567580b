"""Upload and fetch orchestration.

Upload: encrypt, pin the ciphertext, then persist the record. Fetch: load the
record, fetch the ciphertext, decode the material, decrypt. Blob storage and
the document store are not updated atomically; when one side is left behind
it is logged as an orphan for offline reconciliation.
"""
import logging
import os
from dataclasses import dataclass, field
from typing import Dict, Optional

from . import crypto_utils
from .documents import DocumentStore
from .encoding import encode_material
from .errors import DocumentStoreError, FileTooLarge, MetadataPersistFailure, UnpinFailure
from .records import FILE_TYPES, FileRecord, get_file_type, guess_mime_type
from .storage import PinningClient

logger = logging.getLogger(__name__)


@dataclass
class OpenedFile:
    record: FileRecord
    data: bytes = field(repr=False)


@dataclass
class TypeUsage:
    size: int = 0
    count: int = 0
    latest_date: Optional[str] = None


@dataclass
class UsageSummary:
    used: int
    all: int
    by_type: Dict[str, TypeUsage]

    @property
    def available(self):
        return max(self.all - self.used, 0)


class FileService:
    def __init__(self, config, storage=None, documents=None):
        self.config = config
        self.storage = storage or PinningClient(config)
        self.documents = documents or DocumentStore(config)

    def upload_file(self, data, name, owner, account_id="", mime_type=None) -> FileRecord:
        if len(data) > self.config.max_file_size:
            raise FileTooLarge(
                f"{name} is too large. Max file size is {self.config.max_file_size} bytes."
            )

        encrypted = crypto_utils.encrypt_file(data)

        # Only ciphertext leaves the client
        content_id = self.storage.pin(encrypted.ciphertext, filename=f"{name}.enc")

        file_type, extension = get_file_type(name)
        record = FileRecord(
            name=name,
            url=self.storage.gateway_url(content_id),
            bucket_file_id=content_id,
            owner=owner,
            account_id=account_id,
            size=len(data),
            type=file_type,
            extension=extension,
            mime_type=mime_type or guess_mime_type(name),
            **_material_fields(encrypted.material()),
        )

        try:
            saved = self.documents.create(record)
        except DocumentStoreError as e:
            logger.exception("Failed to save metadata for %s (%s)", name, content_id)
            self._discard_blob(content_id, name, owner)
            if isinstance(e, MetadataPersistFailure):
                raise
            raise MetadataPersistFailure(str(e)) from e

        logger.info("Uploaded %s as %s (%d bytes)", name, saved.id, saved.size)
        return saved

    def _discard_blob(self, content_id, name, owner):
        try:
            self.storage.unpin(content_id)
        except UnpinFailure:
            logger.warning(
                "Orphaned blob %s: pinned for %s (owner %s) but no record was saved",
                content_id, name, owner,
            )

    def open_file(self, file_id) -> OpenedFile:
        record = self.documents.get(file_id)
        ciphertext = self.storage.fetch(record.url)
        material = record.material()
        data = crypto_utils.decrypt_with_material(ciphertext, material)
        return OpenedFile(record=record, data=data)

    def get_files(self, owner, types=(), search="", sort="$createdAt-desc", limit=None):
        return self.documents.list(owner, types=types, search=search, sort=sort, limit=limit)

    def get_total_space_used(self, owner) -> UsageSummary:
        by_type = {file_type: TypeUsage() for file_type in FILE_TYPES}
        used = 0
        for record in self.documents.list(owner):
            if record.owner != owner:
                # shared files count against their owner
                continue
            usage = by_type.setdefault(record.type, TypeUsage())
            usage.size += record.size
            usage.count += 1
            if record.created_at and (usage.latest_date is None or record.created_at > usage.latest_date):
                usage.latest_date = record.created_at
            used += record.size
        return UsageSummary(used=used, all=self.config.total_space, by_type=by_type)

    def rename_file(self, file_id, new_name) -> FileRecord:
        new_name = new_name.strip()
        if not new_name:
            raise ValueError("File name cannot be empty")
        record = self.documents.get(file_id)
        if record.extension and not os.path.splitext(new_name)[1]:
            new_name = f"{new_name}.{record.extension}"
        return self.documents.rename(file_id, new_name)

    def update_file_users(self, file_id, users) -> FileRecord:
        unique_users = list(dict.fromkeys(u.strip() for u in users if u and u.strip()))
        return self.documents.update_users(file_id, unique_users)

    def delete_file(self, file_id, bucket_file_id):
        self.documents.delete(file_id)
        try:
            self.storage.unpin(bucket_file_id)
        except UnpinFailure:
            logger.warning(
                "Orphaned blob %s: record %s deleted but unpin failed", bucket_file_id, file_id
            )
            raise
        logger.info("Deleted %s (%s)", file_id, bucket_file_id)


def _material_fields(material):
    encoded = encode_material(material)
    return {
        "encryption_key": encoded["encryptionKey"],
        "iv": encoded["iv"],
        "auth_tag": encoded["authTag"],
    }
