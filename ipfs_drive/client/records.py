import mimetypes
import os
from dataclasses import dataclass, field
from typing import List, Optional

from .crypto_utils import EncryptionMaterial
from .encoding import decode_material

FILE_TYPES = ("document", "image", "video", "audio", "other")

_EXTENSIONS = {
    "document": {
        "pdf", "doc", "docx", "txt", "xls", "xlsx", "csv", "rtf", "ods", "ppt",
        "odp", "md", "html", "htm", "epub", "pages", "fig", "psd", "ai", "indd",
        "xd", "sketch", "afdesign", "afphoto",
    },
    "image": {"jpg", "jpeg", "png", "gif", "bmp", "svg", "webp"},
    "video": {"mp4", "avi", "mov", "mkv", "webm"},
    "audio": {"mp3", "wav", "ogg", "flac"},
}

# URL section -> categories it lists
_TYPE_PARAMS = {
    "documents": ["document"],
    "images": ["image"],
    "media": ["video", "audio"],
    "others": ["other"],
}


def get_file_type(file_name):
    """Return (category, extension) for a file name."""
    extension = os.path.splitext(file_name)[1].lstrip(".").lower()
    if not extension:
        return "other", ""
    for category, extensions in _EXTENSIONS.items():
        if extension in extensions:
            return category, extension
    return "other", extension


def get_file_types_params(section):
    return list(_TYPE_PARAMS.get(section, ["document"]))


def guess_mime_type(file_name):
    mime_type, _ = mimetypes.guess_type(file_name)
    return mime_type or "application/octet-stream"


def convert_file_size(size_in_bytes, digits=1):
    if size_in_bytes < 1024:
        return f"{size_in_bytes} Bytes"
    if size_in_bytes < 1024 * 1024:
        return f"{size_in_bytes / 1024:.{digits}f} KB"
    if size_in_bytes < 1024 * 1024 * 1024:
        return f"{size_in_bytes / (1024 * 1024):.{digits}f} MB"
    return f"{size_in_bytes / (1024 * 1024 * 1024):.{digits}f} GB"


@dataclass
class FileRecord:
    """Metadata document for one uploaded file.

    The encryption fields hold base64 text exactly as stored. Anyone who can
    read the record can decrypt the blob it points to.
    """

    name: str
    url: str
    bucket_file_id: str
    owner: str
    size: int
    type: str
    extension: str
    encryption_key: str = field(repr=False)
    iv: str = field(repr=False)
    auth_tag: str = field(repr=False)
    mime_type: str = "application/octet-stream"
    account_id: str = ""
    users: List[str] = field(default_factory=list)
    id: Optional[str] = None
    created_at: Optional[str] = None

    def material(self) -> EncryptionMaterial:
        return decode_material(self.encryption_key, self.iv, self.auth_tag)

    def is_visible_to(self, user_id):
        return user_id == self.owner or user_id in self.users

    def to_document(self):
        """Fields written to the document store. Store-assigned ids are left out."""
        return {
            "name": self.name,
            "url": self.url,
            "bucketFileId": self.bucket_file_id,
            "owner": self.owner,
            "accountId": self.account_id,
            "users": list(self.users),
            "size": self.size,
            "type": self.type,
            "extension": self.extension,
            "mimeType": self.mime_type,
            "encryptionKey": self.encryption_key,
            "iv": self.iv,
            "authTag": self.auth_tag,
        }

    @classmethod
    def from_document(cls, doc):
        name = doc.get("name") or "Untitled"
        file_type, extension = get_file_type(name)
        return cls(
            id=doc.get("$id"),
            created_at=doc.get("$createdAt"),
            name=name,
            url=doc.get("url", ""),
            bucket_file_id=doc.get("bucketFileId", ""),
            owner=doc.get("owner", ""),
            account_id=doc.get("accountId", ""),
            users=list(doc.get("users") or []),
            size=int(doc.get("size") or 0),
            type=doc.get("type") or file_type,
            extension=doc.get("extension", extension),
            mime_type=doc.get("mimeType") or "application/octet-stream",
            encryption_key=doc.get("encryptionKey", ""),
            iv=doc.get("iv", ""),
            auth_tag=doc.get("authTag", ""),
        )
