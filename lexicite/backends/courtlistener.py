"""CourtListener authority lookup — citation-lookup REST API via httpx."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from lexicite.config import settings
from lexicite.errors import AuthError, TransportError
from lexicite.models.verification import AuthorityLookupResult

logger = logging.getLogger(__name__)

COURT_LISTENER_BASE = "https://www.courtlistener.com"
CITATION_LOOKUP_URL = f"{COURT_LISTENER_BASE}/api/rest/v4/citation-lookup/"

MISSING_KEY_ERROR = "Authority Key missing. Please set your CourtListener Token in Engine Config."
AUTH_FAILED_ERROR = "Authentication failed: The provided CourtListener token is invalid."
NETWORK_ERROR = "Network error communicating with the legal database."


def _auth_header(credential: str) -> str:
    credential = credential.strip()
    return credential if credential.startswith("Token ") else f"Token {credential}"


def _first_match(payload: Any) -> dict | None:
    """Return the first matched record from either lookup payload shape.

    v4 answers with a list of per-citation objects carrying ``clusters``;
    the older v3 shape is ``{"count": n, "results": [...]}``.
    """
    if isinstance(payload, list):
        for item in payload:
            if not isinstance(item, dict):
                continue
            if item.get("status", 200) != 200:
                continue
            clusters = item.get("clusters") or []
            if clusters and isinstance(clusters[0], dict):
                return {"citation": item.get("citation"), **clusters[0]}
        return None
    if isinstance(payload, dict):
        results = payload.get("results")
        if isinstance(results, list) and results and isinstance(results[0], dict):
            return results[0]
    return None


class CourtListenerLookup:
    """Authority lookup against the CourtListener citation API."""

    name: str = "CourtListener"

    def __init__(
        self,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.timeout = timeout or settings.http_timeout
        self._transport = transport

    async def lookup(self, citation_text: str, credential: str) -> AuthorityLookupResult:
        """Look a citation up. Never raises; failures come back as not-found with ``error``."""
        try:
            payload = await self._request(citation_text, credential)
        except AuthError as exc:
            logger.warning("CourtListener auth problem for %r: %s", citation_text, exc)
            return AuthorityLookupResult.not_found(str(exc))
        except TransportError as exc:
            logger.error("CourtListener lookup failed for %r: %s", citation_text, exc)
            return AuthorityLookupResult.not_found(NETWORK_ERROR)

        match = _first_match(payload)
        if match is None:
            return AuthorityLookupResult.not_found()

        absolute_url = match.get("absolute_url")
        citation = match.get("citation_string") or match.get("citation")
        return AuthorityLookupResult(
            found=True,
            case_name=match.get("case_name") or citation,
            citation=citation,
            id=match.get("id"),
            absolute_url=f"{COURT_LISTENER_BASE}{absolute_url}" if absolute_url else None,
        )

    async def _request(self, citation_text: str, credential: str) -> Any:
        if not credential or not credential.strip():
            raise AuthError(MISSING_KEY_ERROR)

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(
                    CITATION_LOOKUP_URL,
                    headers={
                        "Accept": "application/json",
                        "Authorization": _auth_header(credential),
                    },
                    data={"text": citation_text},
                )
        except httpx.HTTPError as exc:
            raise TransportError(str(exc)) from exc

        if response.status_code in (401, 403):
            raise AuthError(AUTH_FAILED_ERROR)
        if response.is_error:
            raise TransportError(f"API Error: {response.status_code}")

        try:
            return response.json()
        except ValueError as exc:
            raise TransportError("non-JSON response") from exc
