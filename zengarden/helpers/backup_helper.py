from typing import Any, Dict, Optional

import requests

from .logging_helper import LoggingHelper


class BackupError(RuntimeError):
    """Raised when the backup service answers with an error or cannot be reached."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class BackupHelper:
    """
    Blocking HTTP client for the cloud backup service. Every call carries full account snapshots:
    {"user": ..., "inventory": ..., "garden": ..., "stores": {...}}.
    The cog runs these calls in a worker thread.
    """

    def __init__(self, base_url: str, logger: Optional[LoggingHelper] = None, timeout: float = 10.0,
                 session: Optional[requests.Session] = None):
        if not base_url:
            raise ValueError("Backup base URL must be provided")
        self.base_url = base_url.rstrip("/")
        self.logger = logger or LoggingHelper()
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"Accept": "application/json", "User-Agent": "zengarden-backup/1.0"})

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        url = f"{self.base_url}{path}"
        try:
            resp = self.session.request(method=method, url=url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            self.logger.log(f"Backup {method} {path} failed: {e}", "ERROR")
            raise BackupError(f"Backup service unreachable: {e}") from e

        if resp.status_code >= 400:
            self.logger.log(f"Backup API error {resp.status_code} on {method} {path}: {resp.text}", "ERROR")
            raise BackupError(f"Backup API error {resp.status_code}: {resp.text}", resp.status_code)
        return resp

    @staticmethod
    def _json(resp: requests.Response) -> Dict[str, Any]:
        if not resp.content:
            return {}
        try:
            return resp.json()
        except ValueError as e:
            raise BackupError(f"Backup service returned invalid JSON: {e}") from e

    # ---------- Account ----------
    def create_account(self, user_id: str, snapshot: Dict[str, Any]) -> Dict[str, Any]:
        resp = self._request("POST", "/api/account", json={"user_id": user_id, **snapshot})
        return self._json(resp)

    def patch_account(self, user_id: str, snapshot: Dict[str, Any]) -> Dict[str, Any]:
        """Overwrites the whole remote account with snapshot."""
        resp = self._request("PATCH", "/api/account", json={"user_id": user_id, **snapshot})
        return self._json(resp)

    def fetch_account(self, user_id: str) -> Dict[str, Any]:
        resp = self._request("GET", f"/api/account/{user_id}")
        return self._json(resp)

    # ---------- User ----------
    def patch_icon(self, user_id: str, icon: str) -> Dict[str, Any]:
        resp = self._request("PATCH", f"/api/user/{user_id}/icon", json={"icon": icon})
        return self._json(resp)

    def patch_username(self, user_id: str, username: str) -> Dict[str, Any]:
        resp = self._request("PATCH", f"/api/user/{user_id}/username", json={"username": username})
        return self._json(resp)

    # ---------- Flows ----------
    def push_account(self, user_id: str, snapshot: Dict[str, Any]) -> Dict[str, Any]:
        """Overwrites the remote copy, creating the account on first backup."""
        try:
            return self.patch_account(user_id, snapshot)
        except BackupError as e:
            if e.status_code != 404:
                raise
        self.logger.log(f"No remote backup for user {user_id} yet; creating one.", "INFO")
        return self.create_account(user_id, snapshot)
