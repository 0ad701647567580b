import secrets
from dataclasses import dataclass, field

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from .errors import AuthenticationFailure, CipherParameterError, RandomSourceUnavailable

KEY_SIZE = 32  # AES-256
IV_SIZE = 12   # 96-bit GCM nonce
TAG_SIZE = 16  # 128-bit tag


@dataclass(frozen=True)
class EncryptionMaterial:
    key: bytes = field(repr=False)
    iv: bytes = field(repr=False)
    auth_tag: bytes = field(repr=False)


@dataclass(frozen=True)
class EncryptedFile:
    ciphertext: bytes
    key: bytes
    iv: bytes
    auth_tag: bytes

    def material(self) -> EncryptionMaterial:
        return EncryptionMaterial(self.key, self.iv, self.auth_tag)

    def __repr__(self):
        return f"EncryptedFile(ciphertext=<{len(self.ciphertext)} bytes>)"


def _as_bytes(data, what):
    if isinstance(data, (bytes, bytearray, memoryview)):
        return bytes(data)
    raise TypeError(f"{what} must be bytes-like, got {type(data).__name__}")


def _random_bytes(size):
    try:
        return secrets.token_bytes(size)
    except (NotImplementedError, OSError) as e:
        raise RandomSourceUnavailable("Secure random source unavailable") from e


def _check_lengths(key, iv, auth_tag=None):
    if len(key) != KEY_SIZE:
        raise CipherParameterError(f"Key must be {KEY_SIZE} bytes, got {len(key)}")
    if len(iv) != IV_SIZE:
        raise CipherParameterError(f"IV must be {IV_SIZE} bytes, got {len(iv)}")
    if auth_tag is not None and len(auth_tag) != TAG_SIZE:
        raise CipherParameterError(f"Auth tag must be {TAG_SIZE} bytes, got {len(auth_tag)}")


def generate_fek():
    return _random_bytes(KEY_SIZE)


def encrypt_file(plaintext) -> EncryptedFile:
    """Encrypt file contents under a fresh key and IV with AES-256-GCM.

    The tag is returned separately, so the ciphertext has the same length
    as the plaintext.
    """
    plaintext = _as_bytes(plaintext, "plaintext")
    fek = generate_fek()
    iv = _random_bytes(IV_SIZE)
    _check_lengths(fek, iv)

    try:
        cipher = Cipher(algorithms.AES(fek), modes.GCM(iv), backend=default_backend())
    except ValueError as e:
        raise CipherParameterError(str(e)) from e
    encryptor = cipher.encryptor()
    ciphertext = encryptor.update(plaintext) + encryptor.finalize()

    return EncryptedFile(ciphertext=ciphertext, key=fek, iv=iv, auth_tag=encryptor.tag)


def decrypt_file(ciphertext, key, iv, auth_tag) -> bytes:
    """Decrypt and authenticate one ciphertext blob.

    Raises AuthenticationFailure if the tag does not verify against the
    ciphertext, key and IV. Nothing decrypted is returned in that case.
    """
    ciphertext = _as_bytes(ciphertext, "ciphertext")
    key = _as_bytes(key, "key")
    iv = _as_bytes(iv, "iv")
    auth_tag = _as_bytes(auth_tag, "auth_tag")
    _check_lengths(key, iv, auth_tag)

    try:
        cipher = Cipher(algorithms.AES(key), modes.GCM(iv, auth_tag), backend=default_backend())
    except ValueError as e:
        raise CipherParameterError(str(e)) from e
    decryptor = cipher.decryptor()
    try:
        file_contents = decryptor.update(ciphertext) + decryptor.finalize()
    except InvalidTag:
        raise AuthenticationFailure("Invalid tag - file decryption failed") from None

    return file_contents


def decrypt_with_material(ciphertext, material: EncryptionMaterial) -> bytes:
    return decrypt_file(ciphertext, material.key, material.iv, material.auth_tag)
