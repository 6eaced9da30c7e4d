"""
Keycloak admin client for the account-setup step.

Design:
- Framework-agnostic; the web adapter calls it off the event loop.
- The user's password lives only at the identity provider. This app never
  stores it; account setup forwards it once via the admin REST API.

Security:
- Never log credentials or tokens.
- Admin credentials come from the environment (`KC_ADMIN_*`).
"""

from __future__ import annotations

from typing import Dict
import os

import requests

from .oidc import OIDCConfig

ADMIN_TIMEOUT_SECONDS = 10


class CredentialUpdateError(Exception):
    """The identity provider rejected or could not process the update."""

    def __init__(self, code: str):
        super().__init__(code)
        self.code = code


class AdminClient:
    def __init__(self, cfg: OIDCConfig) -> None:
        self.cfg = cfg
        self._admin_realm = os.getenv("KC_ADMIN_REALM", "master")
        self._admin_client_id = os.getenv("KC_ADMIN_CLIENT_ID", "admin-cli")
        self._admin_client_secret = os.getenv("KC_ADMIN_CLIENT_SECRET")

    def _token(self) -> str:
        if not self._admin_client_secret:
            raise CredentialUpdateError("admin_not_configured")
        url = f"{self.cfg.base_url.rstrip('/')}/realms/{self._admin_realm}/protocol/openid-connect/token"
        data = {
            "grant_type": "client_credentials",
            "client_id": self._admin_client_id,
            "client_secret": self._admin_client_secret,
        }
        try:
            r = requests.post(url, data=data, timeout=ADMIN_TIMEOUT_SECONDS)
        except requests.RequestException as exc:
            raise CredentialUpdateError("admin_token_failed") from exc
        if r.status_code != 200:
            raise CredentialUpdateError("admin_token_failed")
        token = (r.json() or {}).get("access_token")
        if not token:
            raise CredentialUpdateError("admin_token_failed")
        return str(token)

    def _headers(self, token: str) -> Dict[str, str]:
        return {"Authorization": f"Bearer {token}", "Content-Type": "application/json"}

    def _user_url(self, user_id: str) -> str:
        return f"{self.cfg.base_url.rstrip('/')}/admin/realms/{self.cfg.realm}/users/{user_id}"

    def set_password(self, *, user_id: str, password: str) -> None:
        token = self._token()
        payload = {"type": "password", "value": password, "temporary": False}
        try:
            r = requests.put(
                f"{self._user_url(user_id)}/reset-password",
                headers=self._headers(token),
                json=payload,
                timeout=ADMIN_TIMEOUT_SECONDS,
            )
        except requests.RequestException as exc:
            raise CredentialUpdateError("password_set_failed") from exc
        if r.status_code != 204:
            raise CredentialUpdateError("password_set_failed")

    def set_names(self, *, user_id: str, first_name: str, last_name: str) -> None:
        token = self._token()
        payload = {"firstName": first_name, "lastName": last_name}
        try:
            r = requests.put(
                self._user_url(user_id),
                headers=self._headers(token),
                json=payload,
                timeout=ADMIN_TIMEOUT_SECONDS,
            )
        except requests.RequestException as exc:
            raise CredentialUpdateError("profile_sync_failed") from exc
        if r.status_code != 204:
            raise CredentialUpdateError("profile_sync_failed")
