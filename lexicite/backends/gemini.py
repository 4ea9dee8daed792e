"""Gemini citation verifier — Google Generative Language API via httpx."""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from lexicite.config import settings
from lexicite.errors import ParseError, TransportError
from lexicite.models.citation import CitationSource, LegalStatus, SupersedingCase
from lexicite.models.verification import (
    HistoricalContext,
    HistoricalEvent,
    VerificationMode,
    VerificationResult,
)

logger = logging.getLogger(__name__)

GENERATE_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"

VERIFY_PROMPT = """\
Legal Citation Verification Task: Verify "{citation}".

Determine whether this citation refers to a real legal authority and whether \
that authority is still good law.

Respond with a JSON object with these fields:
- isValid: true if the citation identifies a real, correctly cited authority.
- citationType: always "legal".
- caseName: the full case or statute name, or null if it cannot be identified.
- areaOfLaw: the primary area of law.
- legalStatus: one of good, overruled, caution, superseded, verified, not_found, unknown.
- reason: one or two sentences explaining the verdict.
- confidence: an integer from 0 to 100.
- supersedingCase: if the authority was overruled or superseded, an object \
with name, citation and uri of the controlling authority; otherwise omit it.\
"""

RESEARCH_SUFFIX = """

Use live search results to confirm the subsequent history of the authority. \
End your answer with the JSON object described above.\
"""

HISTORY_PROMPT = """\
Provide historical legal context for the following case or citation: "{query}".
Return structured data about the era, court climate, and surrounding social forces.\
"""

VERIFY_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "isValid": {"type": "BOOLEAN"},
        "citationType": {"type": "STRING", "enum": ["legal"]},
        "caseName": {"type": "STRING"},
        "areaOfLaw": {"type": "STRING"},
        "legalStatus": {
            "type": "STRING",
            "enum": ["good", "overruled", "caution", "superseded", "verified", "not_found", "unknown"],
        },
        "reason": {"type": "STRING"},
        "confidence": {"type": "INTEGER"},
        "supersedingCase": {
            "type": "OBJECT",
            "properties": {
                "name": {"type": "STRING"},
                "citation": {"type": "STRING"},
                "uri": {"type": "STRING"},
            },
        },
    },
    "required": ["isValid", "citationType", "caseName", "legalStatus", "reason", "confidence", "areaOfLaw"],
}

HISTORY_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "query": {"type": "STRING"},
        "era": {"type": "STRING"},
        "topic": {"type": "STRING"},
        "brief": {"type": "STRING"},
        "keyForces": {"type": "ARRAY", "items": {"type": "STRING"}},
        "relatedCases": {"type": "ARRAY", "items": {"type": "STRING"}},
        "timeline": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "year": {"type": "STRING"},
                    "caseName": {"type": "STRING"},
                    "summary": {"type": "STRING"},
                    "citation": {"type": "STRING"},
                },
                "required": ["year", "caseName", "summary"],
            },
        },
    },
    "required": ["query", "era", "topic", "brief", "keyForces", "relatedCases", "timeline"],
}

# Checked in order; first hit wins.
_AREA_KEYWORDS: list[tuple[tuple[str, ...], str]] = [
    (("u.s.c.", "§"), "Statutory Law"),
    (("u.s.", "s. ct.", "l. ed."), "Constitutional Law"),
    (("f.3d", "f.2d"), "Federal Appellate Law"),
    (("crim", "miranda", "terry"), "Criminal Procedure"),
    (("tax",), "Tax Law"),
    (("bankruptcy", "b.r."), "Bankruptcy Law"),
    (("patent", "copyright", "trademark"), "Intellectual Property"),
    (("labor", "nlrb"), "Labor & Employment"),
]


def infer_area_of_law(text: str) -> str:
    """Guess an area of law from the citation text alone."""
    normalized = text.lower()
    for needles, area in _AREA_KEYWORDS:
        if any(n in normalized for n in needles):
            return area
    return "General Practice"


def _load_json_object(raw_text: str) -> dict[str, Any]:
    """Pull the outermost JSON object out of possibly chatty model output."""
    start = raw_text.find("{")
    end = raw_text.rfind("}")
    if start == -1 or end <= start:
        raise ParseError("no JSON object in response")
    try:
        parsed = json.loads(raw_text[start : end + 1])
    except json.JSONDecodeError as exc:
        raise ParseError(str(exc)) from exc
    if not isinstance(parsed, dict):
        raise ParseError("response is not a JSON object")
    return parsed


def _coerce_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return False


def _coerce_str(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _as_list(value: Any) -> list:
    return value if isinstance(value, list) else []


def _coerce_confidence(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        try:
            value = float(value.strip().rstrip("%"))
        except ValueError:
            return None
    if isinstance(value, (int, float)):
        return max(0, min(100, int(round(value))))
    return None


def _coerce_superseding(value: Any) -> SupersedingCase | None:
    if not isinstance(value, dict):
        return None
    name = _coerce_str(value.get("name"))
    citation = _coerce_str(value.get("citation"))
    if not name or not citation:
        return None
    return SupersedingCase(name=name, citation=citation, uri=_coerce_str(value.get("uri")))


def _coerce_sources(value: Any) -> list[CitationSource]:
    if not isinstance(value, list):
        return []
    sources = []
    for item in value:
        if isinstance(item, dict) and _coerce_str(item.get("uri")):
            sources.append(
                CitationSource(uri=item["uri"].strip(), title=_coerce_str(item.get("title")) or "")
            )
    return sources


def parse_verification(raw_text: str | None, citation_text: str) -> VerificationResult:
    """Turn raw model output into a VerificationResult.

    Total: empty output yields an "Empty response." record and anything that
    is not a JSON object yields a "Parsing error." record. Both are unresolved
    (``is_valid=False``, legal status unknown).
    """
    fallback_area = infer_area_of_law(citation_text)
    default = VerificationResult(
        is_valid=False,
        reason="Empty response.",
        confidence=0,
        legal_status=LegalStatus.UNKNOWN,
        area_of_law=fallback_area,
    )
    if not raw_text or not raw_text.strip():
        return default

    try:
        payload = _load_json_object(raw_text)
    except ParseError as exc:
        logger.warning("Gemini: failed to parse verification for %r: %s", citation_text, exc)
        default.reason = "Parsing error."
        return default

    return VerificationResult(
        is_valid=_coerce_bool(payload.get("isValid")),
        reason=_coerce_str(payload.get("reason")) or "",
        case_name=_coerce_str(payload.get("caseName")),
        legal_status=LegalStatus.coerce(payload.get("legalStatus")),
        confidence=_coerce_confidence(payload.get("confidence")),
        area_of_law=_coerce_str(payload.get("areaOfLaw")) or fallback_area,
        superseding_case=_coerce_superseding(payload.get("supersedingCase")),
        sources=_coerce_sources(payload.get("sources")),
    )


def parse_historical_context(raw_text: str | None, query: str) -> HistoricalContext | None:
    if not raw_text:
        return None
    try:
        payload = _load_json_object(raw_text)
    except ParseError as exc:
        logger.warning("Gemini: failed to parse historical context: %s", exc)
        return None

    timeline = [
        HistoricalEvent(
            year=str(e.get("year", "")),
            case_name=str(e.get("caseName", "")),
            summary=str(e.get("summary", "")),
            citation=_coerce_str(e.get("citation")),
        )
        for e in _as_list(payload.get("timeline"))
        if isinstance(e, dict)
    ]
    return HistoricalContext(
        query=_coerce_str(payload.get("query")) or query,
        era=str(payload.get("era", "")),
        topic=str(payload.get("topic", "")),
        brief=str(payload.get("brief", "")),
        key_forces=[str(f) for f in _as_list(payload.get("keyForces"))],
        related_cases=[str(c) for c in _as_list(payload.get("relatedCases"))],
        timeline=timeline,
    )


class GeminiVerifier:
    """Citation verifier backed by Google's Gemini models."""

    name: str = "Gemini"

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = api_key or settings.google_api_key
        self.model = model or settings.gemini_model
        self.timeout = timeout or settings.http_timeout
        self._transport = transport

    async def verify(
        self, citation_text: str, mode: VerificationMode = VerificationMode.STANDARD
    ) -> VerificationResult:
        """Ask Gemini to verify a single citation."""
        body = self._build_verify_request(citation_text, mode)
        data = await self._generate(body)
        result = parse_verification(self._extract_text(data), citation_text)

        if mode is VerificationMode.RESEARCH:
            known = {s.uri for s in result.sources}
            for source in self._extract_grounding_sources(data):
                if source.uri not in known:
                    result.sources.append(source)
                    known.add(source.uri)
        return result

    async def historical_context(self, query: str) -> HistoricalContext | None:
        """Fetch era and background for a case. Returns None on any failure."""
        body = {
            "contents": [{"role": "user", "parts": [{"text": HISTORY_PROMPT.format(query=query)}]}],
            "generationConfig": {
                "responseMimeType": "application/json",
                "responseSchema": HISTORY_SCHEMA,
            },
        }
        try:
            data = await self._generate(body)
        except TransportError as exc:
            logger.error("Historical context lookup failed for %r: %s", query, exc)
            return None
        return parse_historical_context(self._extract_text(data), query)

    def _build_verify_request(self, citation_text: str, mode: VerificationMode) -> dict:
        prompt = VERIFY_PROMPT.format(citation=citation_text)
        generation_config: dict[str, Any] = {"temperature": 0.1}
        body: dict[str, Any] = {}

        if mode is VerificationMode.RESEARCH:
            # Search grounding cannot be combined with a response schema
            prompt += RESEARCH_SUFFIX
            body["tools"] = [{"google_search": {}}]
        else:
            generation_config["responseMimeType"] = "application/json"
            generation_config["responseSchema"] = VERIFY_SCHEMA

        body["contents"] = [{"role": "user", "parts": [{"text": prompt}]}]
        body["generationConfig"] = generation_config
        return body

    async def _generate(self, body: dict) -> dict:
        if not self.api_key:
            raise TransportError("Configuration Error: API Key missing.")

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(
                    GENERATE_URL.format(model=self.model),
                    headers={
                        "x-goog-api-key": self.api_key,
                        "Content-Type": "application/json",
                    },
                    json=body,
                )
                response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise TransportError(
                f"Network Error: Gemini returned {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise TransportError(f"Network Error: {exc}") from exc

        try:
            data = response.json()
        except ValueError:
            # Not JSON at the envelope level; let the parser record it
            return {"_raw": response.text}
        return data if isinstance(data, dict) else {}

    def _first_candidate(self, data: dict) -> dict:
        candidates = data.get("candidates")
        if not isinstance(candidates, list) or not candidates:
            return {}
        first = candidates[0]
        return first if isinstance(first, dict) else {}

    def _extract_text(self, data: dict) -> str:
        """Concatenate the text parts of the first candidate.

        Any envelope that is not the expected shape yields ``""``.
        """
        if "_raw" in data:
            return data["_raw"]
        content = self._first_candidate(data).get("content")
        if not isinstance(content, dict):
            return ""
        parts = content.get("parts")
        if not isinstance(parts, list):
            return ""
        return "".join(
            p["text"] for p in parts if isinstance(p, dict) and isinstance(p.get("text"), str)
        )

    def _extract_grounding_sources(self, data: dict) -> list[CitationSource]:
        metadata = self._first_candidate(data).get("groundingMetadata")
        if not isinstance(metadata, dict):
            return []
        chunks = metadata.get("groundingChunks")
        if not isinstance(chunks, list):
            return []
        sources = []
        for chunk in chunks:
            web = chunk.get("web") if isinstance(chunk, dict) else None
            if isinstance(web, dict) and isinstance(web.get("uri"), str) and web["uri"]:
                sources.append(CitationSource(uri=web["uri"], title=_coerce_str(web.get("title")) or ""))
        return sources
