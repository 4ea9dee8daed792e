"""Tests for the Gemini verifier client and its response parser."""

from __future__ import annotations

import json

import httpx
import pytest

from lexicite.backends.gemini import (
    GeminiVerifier,
    infer_area_of_law,
    parse_historical_context,
    parse_verification,
)
from lexicite.errors import TransportError
from lexicite.models.citation import LegalStatus
from lexicite.models.verification import VerificationMode

ROE_VERDICT = {
    "isValid": True,
    "citationType": "legal",
    "caseName": "Roe v. Wade",
    "areaOfLaw": "Constitutional Law",
    "legalStatus": "overruled",
    "reason": "Overruled in 2022.",
    "confidence": 97,
    "supersedingCase": {"name": "Dobbs v. Jackson", "citation": "597 U.S. 215"},
}


def _envelope(text: str, grounding: list[dict] | None = None) -> dict:
    candidate: dict = {"content": {"parts": [{"text": text}]}}
    if grounding is not None:
        candidate["groundingMetadata"] = {"groundingChunks": grounding}
    return {"candidates": [candidate]}


def test_parse_structured_verdict() -> None:
    result = parse_verification(json.dumps(ROE_VERDICT), "410 U.S. 113")

    assert result.is_valid
    assert result.case_name == "Roe v. Wade"
    assert result.legal_status is LegalStatus.OVERRULED
    assert result.confidence == 97
    assert result.superseding_case.citation == "597 U.S. 215"
    assert result.superseding_case.uri is None


def test_parse_json_wrapped_in_prose() -> None:
    raw = "Here is my analysis:\n```json\n" + json.dumps(ROE_VERDICT) + "\n```\nDone."
    assert parse_verification(raw, "410 U.S. 113").case_name == "Roe v. Wade"


def test_parse_empty_and_garbage_fall_back() -> None:
    empty = parse_verification("", "410 U.S. 113")
    garbage = parse_verification("{not json at all}", "410 U.S. 113")

    assert empty.reason == "Empty response."
    assert garbage.reason == "Parsing error."
    for result in (empty, garbage):
        assert not result.is_valid
        assert result.legal_status is LegalStatus.UNKNOWN
        assert result.area_of_law == "Constitutional Law"


def test_parse_coerces_loose_fields() -> None:
    raw = json.dumps(
        {
            "isValid": "true",
            "legalStatus": "Bogus",
            "confidence": 150,
            "reason": "ok",
            "supersedingCase": {"name": "Only a name"},
            "sources": [{"uri": "https://example.com", "title": "Ex"}, {"title": "no uri"}],
        }
    )

    result = parse_verification(raw, "18 U.S.C. § 1001")

    assert result.is_valid
    assert result.legal_status is LegalStatus.UNKNOWN
    assert result.confidence == 100
    assert result.superseding_case is None
    assert [s.uri for s in result.sources] == ["https://example.com"]
    assert result.area_of_law == "Statutory Law"


@pytest.mark.parametrize(
    ("text", "area"),
    [
        ("18 U.S.C. § 1001", "Statutory Law"),
        ("410 U.S. 113", "Constitutional Law"),
        ("5 F.3d 1234", "Federal Appellate Law"),
        ("In re Smith, 12 B.R. 4", "Bankruptcy Law"),
        ("Something else", "General Practice"),
    ],
)
def test_infer_area_of_law(text: str, area: str) -> None:
    assert infer_area_of_law(text) == area


async def test_standard_mode_sends_schema() -> None:
    captured: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return httpx.Response(200, json=_envelope(json.dumps(ROE_VERDICT)))

    verifier = GeminiVerifier(api_key="k", model="m", transport=httpx.MockTransport(handler))
    result = await verifier.verify("410 U.S. 113", VerificationMode.STANDARD)

    assert result.legal_status is LegalStatus.OVERRULED
    (request,) = captured
    assert request.url.path.endswith("/models/m:generateContent")
    assert request.headers["x-goog-api-key"] == "k"
    body = json.loads(request.content)
    assert body["generationConfig"]["responseMimeType"] == "application/json"
    assert "tools" not in body
    assert "410 U.S. 113" in body["contents"][0]["parts"][0]["text"]


async def test_research_mode_uses_search_and_collects_grounding() -> None:
    captured: list[dict] = []
    grounding = [
        {"web": {"uri": "https://law.example/roe", "title": "Roe"}},
        {"web": {"uri": "https://law.example/roe", "title": "dup"}},
        {"retrievedContext": {}},
    ]

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(json.loads(request.content))
        text = "After searching, my verdict: " + json.dumps(ROE_VERDICT)
        return httpx.Response(200, json=_envelope(text, grounding))

    verifier = GeminiVerifier(api_key="k", transport=httpx.MockTransport(handler))
    result = await verifier.verify("410 U.S. 113", VerificationMode.RESEARCH)

    assert captured[0]["tools"] == [{"google_search": {}}]
    assert "responseSchema" not in captured[0]["generationConfig"]
    assert [s.uri for s in result.sources] == ["https://law.example/roe"]


async def test_http_error_raises_transport_error() -> None:
    verifier = GeminiVerifier(
        api_key="k", transport=httpx.MockTransport(lambda r: httpx.Response(503))
    )
    with pytest.raises(TransportError, match="503"):
        await verifier.verify("410 U.S. 113", VerificationMode.STANDARD)


async def test_missing_api_key_raises_without_request() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    verifier = GeminiVerifier(api_key="", transport=httpx.MockTransport(handler))
    verifier.api_key = ""
    with pytest.raises(TransportError, match="API Key missing"):
        await verifier.verify("410 U.S. 113", VerificationMode.STANDARD)


async def test_empty_candidates_yield_default_record() -> None:
    verifier = GeminiVerifier(
        api_key="k", transport=httpx.MockTransport(lambda r: httpx.Response(200, json={}))
    )
    result = await verifier.verify("410 U.S. 113", VerificationMode.STANDARD)
    assert result.reason == "Empty response."


async def test_historical_context_parses_and_tolerates_failure() -> None:
    payload = {
        "query": "Roe v. Wade",
        "era": "1970s",
        "topic": "Privacy",
        "brief": "Decided in 1973.",
        "keyForces": ["Second-wave feminism"],
        "relatedCases": ["Griswold v. Connecticut"],
        "timeline": [{"year": "1973", "caseName": "Roe v. Wade", "summary": "Decided."}],
    }
    ok = GeminiVerifier(
        api_key="k",
        transport=httpx.MockTransport(
            lambda r: httpx.Response(200, json=_envelope(json.dumps(payload)))
        ),
    )
    broken = GeminiVerifier(
        api_key="k", transport=httpx.MockTransport(lambda r: httpx.Response(500))
    )

    context = await ok.historical_context("Roe v. Wade")

    assert context.era == "1970s"
    assert context.timeline[0].case_name == "Roe v. Wade"
    assert await broken.historical_context("Roe v. Wade") is None


@pytest.mark.parametrize(
    "envelope",
    [
        {"candidates": [{"content": {"parts": [{"text": None}]}}]},
        {"candidates": {"oops": 1}},
        {"candidates": [{"content": "not a dict"}]},
        {"candidates": [{"content": {"parts": "nope"}, "groundingMetadata": []}]},
        {"candidates": ["nope"]},
    ],
)
async def test_malformed_envelope_yields_default_record(envelope: dict) -> None:
    verifier = GeminiVerifier(
        api_key="k", transport=httpx.MockTransport(lambda r: httpx.Response(200, json=envelope))
    )

    result = await verifier.verify("410 U.S. 113", VerificationMode.RESEARCH)

    assert not result.is_valid
    assert result.legal_status is LegalStatus.UNKNOWN
    assert result.reason == "Empty response."
    assert result.sources == []


async def test_null_text_parts_are_skipped() -> None:
    envelope = _envelope(json.dumps(ROE_VERDICT))
    envelope["candidates"][0]["content"]["parts"].insert(0, {"text": None})
    verifier = GeminiVerifier(
        api_key="k", transport=httpx.MockTransport(lambda r: httpx.Response(200, json=envelope))
    )

    result = await verifier.verify("410 U.S. 113", VerificationMode.STANDARD)

    assert result.legal_status is LegalStatus.OVERRULED


def test_historical_context_ignores_non_list_fields() -> None:
    raw = json.dumps({"era": "1970s", "keyForces": 5, "relatedCases": "Griswold", "timeline": {}})

    context = parse_historical_context(raw, "Roe")

    assert context.era == "1970s"
    assert context.query == "Roe"
    assert (context.key_forces, context.related_cases, context.timeline) == ([], [], [])
