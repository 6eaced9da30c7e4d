"""
ID token checks for the login callback.

The callback hands over the raw `id_token`; this module answers "which realm
key signed it, and are its claims acceptable right now?". It never sees the
login state, so nonce comparison stays with the caller.

Checks, in order:
    1. header names a `kid` that the realm currently publishes (RS256 only);
       an unseen `kid` triggers one key-set refresh to follow key rotation
    2. signature, issuer and audience
    3. `exp` / `iat` / `nbf` with `MAX_CLOCK_SKEW_SECONDS` of tolerance
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional, Tuple
import time

import requests
from jose import jwt
from jose.exceptions import JOSEError

from .oidc import HTTP_TIMEOUT_SECONDS, OIDCConfig

ALLOWED_ALGORITHMS = ["RS256"]
MAX_CLOCK_SKEW_SECONDS = 5

# Time checks are done here instead of by jose so the skew allowance applies.
_DECODE_OPTIONS = {
    "verify_signature": True,
    "verify_aud": True,
    "verify_exp": False,
    "verify_iat": False,
    "verify_nbf": False,
    "verify_at_hash": False,
}


class IDTokenVerificationError(Exception):
    """`code` is safe to log and to map to a client error."""

    def __init__(self, code: str):
        super().__init__(code)
        self.code = code


@dataclass
class _KeySet:
    by_kid: Dict[str, dict] = field(default_factory=dict)
    fetched_at: float = 0.0


def _index_keys(jwks: Mapping[str, object]) -> Dict[str, dict]:
    keys = jwks.get("keys")
    if not isinstance(keys, list):
        return {}
    return {k["kid"]: k for k in keys if isinstance(k, dict) and isinstance(k.get("kid"), str)}


class JWKSCache:
    """Realm signing keys per (base_url, realm), refreshed after `ttl_seconds`.

    A lookup for an unknown `kid` refetches once, at most every
    `min_refresh_seconds`, so a rotated realm key is picked up without
    letting forged key ids hammer the identity provider.
    """

    def __init__(self, ttl_seconds: int = 300, min_refresh_seconds: int = 30):
        self.ttl_seconds = ttl_seconds
        self.min_refresh_seconds = min_refresh_seconds
        self._sets: Dict[Tuple[str, str], _KeySet] = {}

    def key_for(self, cfg: OIDCConfig, kid: str) -> Optional[dict]:
        realm = (cfg.base_url, cfg.realm)
        now = time.time()
        current = self._sets.get(realm)
        if current is None or now - current.fetched_at >= self.ttl_seconds:
            current = self._refresh(cfg, realm, now)
        key = current.by_kid.get(kid)
        if key is None and now - current.fetched_at >= self.min_refresh_seconds:
            key = self._refresh(cfg, realm, now).by_kid.get(kid)
        return key

    def _refresh(self, cfg: OIDCConfig, realm: Tuple[str, str], now: float) -> _KeySet:
        fresh = _KeySet(by_kid=_index_keys(self._fetch(cfg)), fetched_at=now)
        self._sets[realm] = fresh
        return fresh

    def _fetch(self, cfg: OIDCConfig) -> Dict[str, object]:
        try:
            resp = requests.get(cfg.jwks_endpoint, timeout=HTTP_TIMEOUT_SECONDS)
            resp.raise_for_status()
            body = resp.json()
        except ValueError as exc:
            raise IDTokenVerificationError("jwks_invalid") from exc
        except requests.RequestException as exc:
            raise IDTokenVerificationError("jwks_fetch_failed") from exc
        if not isinstance(body, dict) or "keys" not in body:
            raise IDTokenVerificationError("jwks_invalid")
        return body


JWKS_CACHE = JWKSCache()


def _signing_key(id_token: str, cfg: OIDCConfig, cache: JWKSCache) -> dict:
    try:
        kid = jwt.get_unverified_header(id_token).get("kid")
    except JOSEError as exc:
        raise IDTokenVerificationError("invalid_id_token") from exc
    if not kid:
        raise IDTokenVerificationError("missing_kid")
    key = cache.key_for(cfg, kid)
    if key is None:
        raise IDTokenVerificationError("unknown_kid")
    return key


def verify_id_token(*, id_token: str, cfg: OIDCConfig, cache: JWKSCache | None = None) -> Dict[str, object]:
    """Claims of `id_token` once every check passed; `IDTokenVerificationError` otherwise."""
    key = _signing_key(id_token, cfg, cache or JWKS_CACHE)
    try:
        claims = jwt.decode(
            id_token,
            key,
            algorithms=ALLOWED_ALGORITHMS,
            audience=cfg.client_id,
            issuer=cfg.issuer,
            options=_DECODE_OPTIONS,
        )
    except JOSEError as exc:
        raise IDTokenVerificationError("invalid_id_token") from exc
    _validate_temporal_claims(claims)
    return claims


def _validate_temporal_claims(claims: Mapping[str, object], now: float | None = None) -> None:
    """`exp` is required and must not be past; `iat`/`nbf`, when numeric, not in the future."""
    now = time.time() if now is None else now
    exp = claims.get("exp")
    if not isinstance(exp, (int, float)) or now > exp + MAX_CLOCK_SKEW_SECONDS:
        raise IDTokenVerificationError("invalid_id_token")
    for name in ("iat", "nbf"):
        value = claims.get(name)
        if isinstance(value, (int, float)) and value > now + MAX_CLOCK_SKEW_SECONDS:
            raise IDTokenVerificationError("invalid_id_token")
