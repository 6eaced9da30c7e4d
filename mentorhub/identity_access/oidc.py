"""
Minimal OIDC client for Keycloak.

Why: Keep the protocol details out of the web adapter. The FastAPI routes ask
this client for the authorization URL, the token exchange and the end-session
URL; they never assemble IdP URLs themselves.

Security: Authorization code flow with PKCE (S256) and a nonce. The caller
stores state, code_verifier and nonce server-side (`stores.StateStore`).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional
import base64
import hashlib
import os
from urllib.parse import urlencode

# Indirection so tests can monkeypatch the transport.
import requests as http

HTTP_TIMEOUT_SECONDS = 5


def http_post(url: str, data: Dict[str, str], headers: Dict[str, str]):
    return http.post(url, data=data, headers=headers, timeout=HTTP_TIMEOUT_SECONDS)


@dataclass(frozen=True)
class OIDCConfig:
    base_url: str  # server-to-server, e.g. http://keycloak:8080
    realm: str
    client_id: str
    redirect_uri: str
    public_base_url: str | None = None  # browser-facing

    @property
    def browser_base(self) -> str:
        return (self.public_base_url or self.base_url).rstrip("/")

    @property
    def issuer(self) -> str:
        return f"{self.base_url.rstrip('/')}/realms/{self.realm}"

    @property
    def auth_endpoint(self) -> str:
        return f"{self.browser_base}/realms/{self.realm}/protocol/openid-connect/auth"

    @property
    def token_endpoint(self) -> str:
        return f"{self.issuer}/protocol/openid-connect/token"

    @property
    def jwks_endpoint(self) -> str:
        return f"{self.issuer}/protocol/openid-connect/certs"

    @property
    def end_session_endpoint(self) -> str:
        return f"{self.browser_base}/realms/{self.realm}/protocol/openid-connect/logout"


class OIDCClient:
    def __init__(self, config: OIDCConfig):
        self.cfg = config

    @staticmethod
    def generate_code_verifier(length: int = 64) -> str:
        """High-entropy URL-safe verifier (RFC 7636 allows 43..128 chars)."""
        return base64.urlsafe_b64encode(os.urandom(length)).decode("ascii").rstrip("=")

    @staticmethod
    def code_challenge_s256(code_verifier: str) -> str:
        digest = hashlib.sha256(code_verifier.encode("ascii")).digest()
        return base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")

    def build_authorization_url(self, *, state: str, code_challenge: str, nonce: Optional[str] = None) -> str:
        params = {
            "response_type": "code",
            "client_id": self.cfg.client_id,
            "redirect_uri": self.cfg.redirect_uri,
            "scope": "openid profile",
            "state": state,
            "code_challenge": code_challenge,
            "code_challenge_method": "S256",
        }
        if nonce:
            params["nonce"] = nonce
        return f"{self.cfg.auth_endpoint}?{urlencode(params)}"

    def exchange_code_for_tokens(self, *, code: str, code_verifier: str) -> Dict[str, str]:
        """Exchange the authorization code; raises ValueError on any non-200."""
        data = {
            "grant_type": "authorization_code",
            "code": code,
            "client_id": self.cfg.client_id,
            "redirect_uri": self.cfg.redirect_uri,
            "code_verifier": code_verifier,
        }
        headers = {"Content-Type": "application/x-www-form-urlencoded"}
        resp = http_post(self.cfg.token_endpoint, data=data, headers=headers)
        if resp.status_code != 200:
            raise ValueError("token_exchange_failed")
        return resp.json()

    def build_end_session_url(self, *, post_logout_redirect_uri: str, id_token_hint: Optional[str] = None) -> str:
        params = {"post_logout_redirect_uri": post_logout_redirect_uri}
        if id_token_hint:
            params["id_token_hint"] = id_token_hint
        else:
            params["client_id"] = self.cfg.client_id
        return f"{self.cfg.end_session_endpoint}?{urlencode(params)}"
