import os
from dataclasses import dataclass

from .errors import ConfigError

MAX_FILE_SIZE = 50 * 1024 * 1024  # 50MB
TOTAL_SPACE = 2 * 1024 * 1024 * 1024  # 2GB


@dataclass(frozen=True)
class Config:
    """Everything the client needs to reach the pinning service and the document store."""

    pinata_jwt: str = ""
    pin_url: str = "https://api.pinata.cloud/pinning/pinFileToIPFS"
    unpin_url: str = "https://api.pinata.cloud/pinning/unpin/"
    gateway_url: str = "https://gateway.pinata.cloud/ipfs/"
    documents_endpoint: str = "http://127.0.0.1:5000"
    project_id: str = ""
    api_key: str = ""
    database_id: str = "drive"
    collection_id: str = "files"
    request_timeout: float = 30.0
    max_file_size: int = MAX_FILE_SIZE
    total_space: int = TOTAL_SPACE
    log_level: str = "INFO"

    @property
    def documents_url(self):
        return (
            f"{self.documents_endpoint.rstrip('/')}/databases/{self.database_id}"
            f"/collections/{self.collection_id}/documents"
        )

    @classmethod
    def local(cls, server_url="http://127.0.0.1:5000", **overrides):
        """Point both collaborators at a development server."""
        server_url = server_url.rstrip("/")
        values = {
            "pin_url": f"{server_url}/pinning/pinFileToIPFS",
            "unpin_url": f"{server_url}/pinning/unpin/",
            "gateway_url": f"{server_url}/ipfs/",
            "documents_endpoint": server_url,
        }
        values.update(overrides)
        return cls(**values)

    @classmethod
    def from_env(cls, environ=None):
        env = os.environ if environ is None else environ
        if env.get("IPFS_DRIVE_LOCAL"):
            defaults = cls.local(env.get("IPFS_DRIVE_SERVER", "http://127.0.0.1:5000"))
        else:
            defaults = cls()
        return cls(
            pinata_jwt=env.get("PINATA_JWT", defaults.pinata_jwt),
            pin_url=env.get("PINATA_PIN_URL", defaults.pin_url),
            unpin_url=env.get("PINATA_UNPIN_URL", defaults.unpin_url),
            gateway_url=env.get("PINATA_GATEWAY_URL", defaults.gateway_url),
            documents_endpoint=env.get("DOCUMENTS_ENDPOINT", defaults.documents_endpoint),
            project_id=env.get("DOCUMENTS_PROJECT_ID", defaults.project_id),
            api_key=env.get("DOCUMENTS_API_KEY", defaults.api_key),
            database_id=env.get("DOCUMENTS_DATABASE_ID", defaults.database_id),
            collection_id=env.get("DOCUMENTS_COLLECTION_ID", defaults.collection_id),
            request_timeout=_number(env, "REQUEST_TIMEOUT", float, defaults.request_timeout),
            max_file_size=_number(env, "MAX_FILE_SIZE", int, defaults.max_file_size),
            total_space=_number(env, "TOTAL_SPACE", int, defaults.total_space),
            log_level=env.get("IPFS_DRIVE_LOG_LEVEL", defaults.log_level).upper(),
        )

    def __repr__(self):
        # credentials stay out of logs and tracebacks
        return (
            f"Config(pin_url={self.pin_url!r}, gateway_url={self.gateway_url!r}, "
            f"documents_url={self.documents_url!r})"
        )


def _number(env, name, kind, default):
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = kind(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from None
    if value <= 0:
        raise ConfigError(f"{name} must be positive, got {raw!r}")
    return value
