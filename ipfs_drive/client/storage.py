# Pinning service client: pushes ciphertext to IPFS and fetches it back
import logging

import requests

from .errors import FetchFailure, StorageUploadFailure, UnpinFailure

logger = logging.getLogger(__name__)


class PinningClient:
    def __init__(self, config, session=None):
        self.config = config
        self.session = session or requests.Session()

    def _auth_headers(self):
        if not self.config.pinata_jwt:
            return {}
        return {"Authorization": f"Bearer {self.config.pinata_jwt}"}

    def gateway_url(self, content_id):
        return f"{self.config.gateway_url.rstrip('/')}/{content_id}"

    def pin(self, blob, filename="file.bin"):
        """Upload a blob and return its content identifier."""
        files = {"file": (filename, blob, "application/octet-stream")}
        try:
            response = self.session.post(
                self.config.pin_url,
                files=files,
                headers=self._auth_headers(),
                timeout=self.config.request_timeout,
            )
            response.raise_for_status()
            content_id = response.json()["IpfsHash"]
        except requests.exceptions.RequestException as e:
            raise StorageUploadFailure(f"Failed to upload file to IPFS: {e}") from e
        except (ValueError, KeyError) as e:
            raise StorageUploadFailure("Pinning service returned no content identifier") from e

        logger.debug("Pinned %d bytes as %s", len(blob), content_id)
        return content_id

    def unpin(self, content_id):
        url = f"{self.config.unpin_url.rstrip('/')}/{content_id}"
        try:
            response = self.session.delete(
                url, headers=self._auth_headers(), timeout=self.config.request_timeout
            )
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            raise UnpinFailure(f"Failed to unpin {content_id}: {e}", content_id) from e
        logger.debug("Unpinned %s", content_id)

    def fetch(self, url):
        try:
            response = self.session.get(url, timeout=self.config.request_timeout)
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            raise FetchFailure(f"Failed to fetch encrypted file: {e}") from e
        return response.content
