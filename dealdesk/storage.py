import logging
from dataclasses import dataclass
from typing import List, Optional
from urllib.parse import quote

import requests

from .config import HTTP_TIMEOUT, SUPABASE_SERVICE_KEY, SUPABASE_URL

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Raised when an object storage call fails."""


@dataclass
class IncomingFile:
    """A file received from a client, read fully into memory."""

    name: str
    content: bytes
    content_type: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.content)


class StorageClient:
    """Thin client for the hosted object storage REST API (buckets of files)."""

    def __init__(self, base_url: str = SUPABASE_URL, api_key: str = SUPABASE_SERVICE_KEY,
                 session: Optional[requests.Session] = None, timeout: float = HTTP_TIMEOUT):
        self.base_url = f"{base_url}/storage/v1"
        self.session = session or requests.Session()
        self.session.headers.update({"Authorization": f"Bearer {api_key}", "apikey": api_key})
        self.timeout = timeout

    def _object_url(self, prefix: str, bucket: str, path: str) -> str:
        # keys keep their raw names, only the request URL is percent-encoded
        return f"{self.base_url}/{prefix}/{bucket}/{quote(path, safe='/')}"

    def _check(self, response: requests.Response, action: str, path: str) -> requests.Response:
        if not response.ok:
            raise StorageError(f"{action} {path} failed: {response.status_code} {response.text}")
        return response

    def upload(self, bucket: str, path: str, content: bytes, content_type: Optional[str] = None,
               upsert: bool = False) -> str:
        """Store bytes at bucket/path and return the path."""
        headers = {
            "Content-Type": content_type or "application/octet-stream",
            "x-upsert": "true" if upsert else "false",
        }
        try:
            response = self.session.post(
                self._object_url("object", bucket, path),
                data=content,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise StorageError(f"upload {bucket}/{path} failed: {e}") from e
        self._check(response, "upload", f"{bucket}/{path}")
        return path

    def download(self, bucket: str, path: str) -> bytes:
        """Download a file's bytes from a bucket."""
        try:
            response = self.session.get(
                self._object_url("object", bucket, path), timeout=self.timeout
            )
        except requests.RequestException as e:
            raise StorageError(f"download {bucket}/{path} failed: {e}") from e
        return self._check(response, "download", f"{bucket}/{path}").content

    def remove(self, bucket: str, paths: List[str]) -> None:
        if not paths:
            return
        try:
            response = self.session.delete(
                f"{self.base_url}/object/{bucket}",
                json={"prefixes": paths},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise StorageError(f"remove from {bucket} failed: {e}") from e
        self._check(response, "remove", bucket)

    def create_signed_url(self, bucket: str, path: str, expires_in: int = 3600) -> str:
        try:
            response = self.session.post(
                self._object_url("object/sign", bucket, path),
                json={"expiresIn": expires_in},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise StorageError(f"sign {bucket}/{path} failed: {e}") from e
        signed = self._check(response, "sign", f"{bucket}/{path}").json().get("signedURL", "")
        if not signed:
            raise StorageError(f"sign {bucket}/{path} returned no URL")
        if signed.startswith("http"):
            return signed
        return f"{self.base_url}{signed}"
