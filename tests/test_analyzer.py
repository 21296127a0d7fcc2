"""Tests for the analysis boundary."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from catalog_worker.analyzer import ImageAnalyzer, validate_image_url
from catalog_worker.errors import InputError
from catalog_worker.schemas.image import AnalysisContext, AnalysisResult

REPLY = "OBJECTS: sand, ocean\nSCENE: beach\nDESCRIPTION: A golden sunset over the ocean."
IMAGE_URL = "https://cdn.test/sunset.jpg"


@pytest.fixture
def adapter():
    adapter = MagicMock()
    adapter.complete = AsyncMock(return_value=REPLY)
    return adapter


@pytest.mark.parametrize("url", ["", None, "sunset.jpg", "file:///tmp/a.jpg", "blob:abc", "https://"])
def test_validate_image_url_rejects_local_refs(url):
    with pytest.raises(InputError):
        validate_image_url(url)


def test_validate_image_url_accepts_http():
    assert validate_image_url(" http://cdn.test/a.jpg ") == "http://cdn.test/a.jpg"


@pytest.mark.asyncio
async def test_analyze_success(adapter):
    analyzer = ImageAnalyzer(adapter=adapter, timeout=0)
    context = AnalysisContext(title="Sunset Beach", tags=["vacation"])

    result = await analyzer.analyze(IMAGE_URL, context)

    assert result.succeeded
    assert set(result.tags) >= {"sunset", "beach", "vacation", "sand", "ocean"}
    assert result.description == "A golden sunset over the ocean."
    messages = adapter.complete.call_args[0][0]
    assert messages[0]["content"][0]["image_url"]["url"] == IMAGE_URL
    assert 'titled "Sunset Beach"' in messages[0]["content"][1]["text"]


@pytest.mark.asyncio
async def test_input_error_never_reaches_model(adapter):
    analyzer = ImageAnalyzer(adapter=adapter)

    with pytest.raises(InputError):
        await analyzer.analyze("local-file.png")
    adapter.complete.assert_not_called()


@pytest.mark.parametrize(
    "error",
    [RuntimeError("model unavailable"), ConnectionError("network down"), ValueError("bad reply")],
)
@pytest.mark.asyncio
async def test_model_errors_become_error_envelope(adapter, error):
    adapter.complete = AsyncMock(side_effect=error)
    analyzer = ImageAnalyzer(adapter=adapter)
    context = AnalysisContext(description="Mine")

    result = await analyzer.analyze(IMAGE_URL, context)
    success = await ImageAnalyzer(adapter=MagicMock(complete=AsyncMock(return_value=REPLY))).analyze(
        IMAGE_URL
    )

    assert isinstance(result, AnalysisResult)
    assert set(result.model_dump()) == set(success.model_dump())
    assert result.objects == result.scenes == result.tags == []
    assert result.description == ""
    assert result.error == str(error)


@pytest.mark.asyncio
async def test_timeout_becomes_error_envelope(adapter):
    async def slow(messages):
        await asyncio.sleep(1)
        return REPLY

    adapter.complete = slow
    analyzer = ImageAnalyzer(adapter=adapter, timeout=0.01)

    result = await analyzer.analyze(IMAGE_URL)

    assert not result.succeeded
    assert result.error == "TimeoutError"


@pytest.mark.asyncio
async def test_handle_request_success(adapter):
    analyzer = ImageAnalyzer(adapter=adapter)

    status, body = await analyzer.handle_request(
        {"imageUrl": IMAGE_URL, "metadata": {"title": "Sunset Beach", "tags": ["vacation"]}}
    )

    assert status == 200
    assert body["error"] is None
    assert "raw_results" in body
    assert body["raw_results"]["llm_analysis"]["objects"][0] == {"label": "sand", "confidence": 0.9}


@pytest.mark.asyncio
async def test_handle_request_missing_url(adapter):
    analyzer = ImageAnalyzer(adapter=adapter)

    status, body = await analyzer.handle_request({})

    assert status == 400
    assert body["error"] == "Image URL is required"
    assert body["details"] == "Failed to analyze image"
    assert body["objects"] == []
    adapter.complete.assert_not_called()


@pytest.mark.asyncio
async def test_handle_request_model_failure(adapter):
    adapter.complete = AsyncMock(side_effect=RuntimeError("model unavailable"))
    analyzer = ImageAnalyzer(adapter=adapter)

    status, body = await analyzer.handle_request(
        {"imageUrl": IMAGE_URL, "metadata": {"technical": {"orientation": "portrait"}}}
    )

    assert status == 500
    assert body["error"] == "model unavailable"
    assert body["technical_details"]["orientation"] == "portrait"


@pytest.mark.asyncio
async def test_handle_request_tolerates_bad_metadata(adapter):
    analyzer = ImageAnalyzer(adapter=adapter)

    status, body = await analyzer.handle_request({"imageUrl": IMAGE_URL, "metadata": {"tags": 5}})

    assert status == 200
    assert "sand" in body["tags"]
