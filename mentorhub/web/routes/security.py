"""
Shared web security helpers for routers.

Same-origin check for state-changing requests (onboarding, preview, account
setup). Keeping one implementation avoids drift between routers.
"""
from __future__ import annotations

import os
from urllib.parse import urlparse

from fastapi import Request
from fastapi.responses import HTMLResponse, JSONResponse, Response


def _trust_proxy() -> bool:
    return (os.getenv("MENTORHUB_TRUST_PROXY", "false") or "").lower() == "true"


def _parse_origin(url: str) -> tuple[str, str, int]:
    p = urlparse(url)
    if not p.scheme or not p.hostname:
        raise ValueError("invalid_origin")
    scheme = p.scheme.lower()
    port = p.port if p.port is not None else (443 if scheme == "https" else 80)
    return scheme, p.hostname.lower(), int(port)


def _server_origin(request: Request) -> tuple[str, str, int]:
    scheme = (request.url.scheme or "http").lower()
    host = (request.url.hostname or "").lower()
    port = int(request.url.port) if request.url.port else (443 if scheme == "https" else 80)
    if not _trust_proxy():
        return scheme, host, port
    xf_proto = (request.headers.get("x-forwarded-proto") or scheme).split(",")[0].strip().lower()
    xf_host = (request.headers.get("x-forwarded-host") or "").split(",")[0].strip().lower()
    if xf_host:
        if ":" in xf_host:
            host, port_str = xf_host.rsplit(":", 1)
            port = int(port_str) if port_str.isdigit() else (443 if xf_proto == "https" else 80)
        else:
            host = xf_host
            port = 443 if xf_proto == "https" else 80
    return xf_proto or scheme, host, port


def _is_same_origin(request: Request, *, strict: bool = False) -> bool:
    """Verify same-origin using the Origin or Referer header.

    - Origin present: scheme/host/port must match the server.
    - Else Referer present: its origin must match.
    - Neither: allowed for non-browser clients unless `strict`.
    Forwarded headers are honoured only with MENTORHUB_TRUST_PROXY=true.
    """
    try:
        server = _server_origin(request)
        origin_val = request.headers.get("origin")
        if origin_val:
            return _parse_origin(origin_val) == server
        referer_val = request.headers.get("referer")
        if referer_val:
            return _parse_origin(referer_val) == server
        return not strict
    except ValueError:
        return False


def _json_private(payload, *, status_code: int = 200, headers: dict | None = None) -> JSONResponse:
    """JSONResponse that neither browsers nor proxies may cache."""
    merged = {"Cache-Control": "private, no-store"}
    if headers:
        merged.update(headers)
    return JSONResponse(content=payload, status_code=status_code, headers=merged)


def _csrf_guard(request: Request, *, html: bool = False) -> Response | None:
    """Reject cross-origin writes.

    Strict in prod (Origin or Referer required) or with MENTORHUB_STRICT_CSRF=true;
    otherwise requests without either header pass. Browser form posts get an
    empty HTML 403 (`html=True`), API calls a JSON error.
    """
    from mentorhub.web import main as mod

    strict = mod.SETTINGS.environment == "prod" or (os.getenv("MENTORHUB_STRICT_CSRF", "false") or "").lower() == "true"
    if _is_same_origin(request, strict=strict):
        return None
    if html:
        return HTMLResponse("", status_code=403, headers={"Cache-Control": "private, no-store", "Vary": "Origin"})
    return _json_private({"error": "forbidden", "detail": "csrf_violation"}, status_code=403, headers={"Vary": "Origin"})
