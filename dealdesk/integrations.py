import logging
from typing import Any, Dict, List, Optional, Tuple

import requests

from .config import HTTP_TIMEOUT, SUPABASE_SERVICE_KEY, SUPABASE_URL

logger = logging.getLogger(__name__)

# (field name, (file name, bytes, content type))
FormFile = Tuple[str, Tuple[str, bytes, str]]


class IntegrationError(Exception):
    """Raised when a webhook or edge function call fails."""


class IntegrationClient:
    """Outbound calls to automation webhooks and hosted edge functions."""

    def __init__(self, functions_url: str = f"{SUPABASE_URL}/functions/v1",
                 api_key: str = SUPABASE_SERVICE_KEY, session: Optional[requests.Session] = None,
                 timeout: float = HTTP_TIMEOUT):
        self.functions_url = functions_url
        self.api_key = api_key
        self.session = session or requests.Session()
        self.timeout = timeout

    def post_form(self, url: str, fields: Dict[str, str], files: Optional[List[FormFile]] = None) -> Any:
        """Multipart POST to a webhook. Returns the decoded JSON body, or None."""
        try:
            response = self.session.post(url, data=fields, files=files or None, timeout=self.timeout)
        except requests.RequestException as e:
            raise IntegrationError(f"Webhook {url} unreachable: {e}") from e
        if not response.ok:
            raise IntegrationError(f"Webhook failed: {response.status_code}")
        return self._json_or_none(response)

    def post_json(self, url: str, payload: Dict[str, Any]) -> Any:
        try:
            response = self.session.post(url, json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            raise IntegrationError(f"Webhook {url} unreachable: {e}") from e
        if not response.ok:
            raise IntegrationError(f"Webhook failed: {response.status_code}")
        return self._json_or_none(response)

    def notify(self, url: str, payload: Dict[str, Any]) -> bool:
        """Fire-and-forget JSON POST; failures are logged, never raised."""
        try:
            self.post_json(url, payload)
        except IntegrationError as e:
            logger.error("Notification to %s failed: %s", url, e)
            return False
        return True

    def invoke_function(self, name: str, body: Dict[str, Any]) -> Dict[str, Any]:
        try:
            response = self.session.post(
                f"{self.functions_url}/{name}",
                json=body,
                headers={"Authorization": f"Bearer {self.api_key}"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise IntegrationError(f"Edge function {name} unreachable: {e}") from e
        if not response.ok:
            raise IntegrationError(f"Edge function {name} failed: {response.status_code}")
        data = self._json_or_none(response)
        if not isinstance(data, dict):
            raise IntegrationError(f"Edge function {name} returned an unexpected payload")
        return data

    @staticmethod
    def _json_or_none(response: requests.Response) -> Any:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return None
