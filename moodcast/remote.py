"""
remote.py

HTTP collaborators of the pipeline:
- TokenAuth: holds the session token and answers is_authenticated()
- JournalClient: fetches a user's mood entries
- RemoteModelStore: mirrors trained models under (user, model name)

The server derives the user from the token, so requests only carry the
model name.
"""

import logging
from typing import Any, Dict, List, Optional

import requests

from .config import API_URL, REQUEST_TIMEOUT
from .entries import MoodEntry, sort_entries
from .errors import ModelNotFoundError, NotAuthenticatedError, PersistenceError

logger = logging.getLogger(__name__)


class TokenAuth:
    def __init__(self, token: Optional[str] = None):
        self.token = token

    def is_authenticated(self) -> bool:
        return bool(self.token)

    def set_token(self, token: Optional[str]) -> None:
        self.token = token

    def headers(self) -> Dict[str, str]:
        if not self.token:
            raise NotAuthenticatedError("No auth token available")
        return {"Content-Type": "application/json", "x-auth-token": self.token}


class _ApiClient:
    def __init__(self, auth: TokenAuth, base_url: str = API_URL, timeout: float = REQUEST_TIMEOUT,
                 session: Optional[requests.Session] = None):
        self.auth = auth
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        url = f"{self.base_url}/{path.lstrip('/')}"
        try:
            response = self.session.request(
                method, url, headers=self.auth.headers(), timeout=self.timeout, **kwargs
            )
        except requests.exceptions.RequestException as e:
            raise PersistenceError(f"{method} {url} failed: {e}") from e
        return response


class JournalClient(_ApiClient):
    def get_entries(self) -> List[MoodEntry]:
        """All of the user's entries, oldest first."""
        response = self._request("GET", "/mood-entries")
        if response.status_code != 200:
            raise PersistenceError(f"Fetching mood entries failed with HTTP {response.status_code}")
        return sort_entries(MoodEntry.from_dict(item) for item in response.json())


class RemoteModelStore(_ApiClient):
    def get_model(self, model_name: str) -> Dict[str, Any]:
        """
        Returns the stored document: {'modelData': {...}, 'metrics': {...}}.

        Raises:
            ModelNotFoundError: the user has no model under this name
            PersistenceError: any other transport or server failure
        """
        response = self._request("GET", f"/ml-models/{model_name}")
        if response.status_code == 404:
            raise ModelNotFoundError(f"No remote model named '{model_name}'")
        if response.status_code != 200:
            raise PersistenceError(f"Fetching model '{model_name}' failed with HTTP {response.status_code}")
        return response.json()

    def put_model(self, model_name: str, model_data: Dict[str, Any], metrics: Dict[str, Any]) -> None:
        response = self._request(
            "POST", f"/ml-models/{model_name}", json={"modelData": model_data, "metrics": metrics}
        )
        if response.status_code not in (200, 201):
            raise PersistenceError(f"Saving model '{model_name}' failed with HTTP {response.status_code}")
        logger.info("Model '%s' mirrored to remote store", model_name)

    def delete_model(self, model_name: str) -> None:
        response = self._request("DELETE", f"/ml-models/{model_name}")
        if response.status_code == 404:
            raise ModelNotFoundError(f"No remote model named '{model_name}'")
        if response.status_code != 200:
            raise PersistenceError(f"Deleting model '{model_name}' failed with HTTP {response.status_code}")
