import base64
import binascii

from .crypto_utils import IV_SIZE, KEY_SIZE, TAG_SIZE, EncryptionMaterial
from .errors import MalformedEncodingError


def encode_bytes(data) -> str:
    return base64.b64encode(bytes(data)).decode("ascii")


def decode_bytes(text) -> bytes:
    if isinstance(text, bytes):
        try:
            text = text.decode("ascii")
        except UnicodeDecodeError:
            raise MalformedEncodingError("Encoded value is not ASCII") from None
    if not isinstance(text, str):
        raise MalformedEncodingError(f"Expected base64 text, got {type(text).__name__}")
    try:
        return base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError) as e:
        raise MalformedEncodingError(f"Invalid base64: {e}") from None


def encode_material(material: EncryptionMaterial) -> dict:
    return {
        "encryptionKey": encode_bytes(material.key),
        "iv": encode_bytes(material.iv),
        "authTag": encode_bytes(material.auth_tag),
    }


def decode_material(key_b64, iv_b64, tag_b64) -> EncryptionMaterial:
    """Decode the three base64 fields of a file record.

    Wrong lengths are reported as malformed encoding: the record was
    corrupted or tampered with, the caller did nothing wrong.
    """
    fields = (
        ("encryptionKey", key_b64, KEY_SIZE),
        ("iv", iv_b64, IV_SIZE),
        ("authTag", tag_b64, TAG_SIZE),
    )
    decoded = []
    for field, value, size in fields:
        if not value:
            raise MalformedEncodingError(f"Missing {field}")
        raw = decode_bytes(value)
        if len(raw) != size:
            raise MalformedEncodingError(f"{field} decodes to {len(raw)} bytes, expected {size}")
        decoded.append(raw)
    return EncryptionMaterial(*decoded)
