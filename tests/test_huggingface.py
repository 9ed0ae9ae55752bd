"""
Tests for the Hugging Face inference client, text generator and speech synthesizer.
"""

from __future__ import annotations

import json
from concurrent.futures import Future
from types import SimpleNamespace

import httpx
import pytest

from bookwise.infrastructure.generation import (
    HuggingFaceClient,
    HuggingFaceSpeechSynthesizer,
    HuggingFaceTextGenerator,
)
from bookwise.infrastructure.generation.huggingface import (
    DEFAULT_SUMMARY_MODEL,
    SIMPLE_GENERATION_PARAMETERS,
    build_combine_prompt,
    build_summary_prompt,
)
from bookwise.shared.exceptions import RateLimitError, ServiceUnavailableError, UpstreamError

FLAC_PAYLOAD = b"fLaC" + b"\x00" * 512


class Recorder:
    """Replays responses in order; the last one repeats."""

    def __init__(self, *responses: httpx.Response):
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]

    def body(self, index: int) -> dict:
        return json.loads(self.requests[index].content)


def generated(text: str) -> httpx.Response:
    return httpx.Response(200, json=[{"generated_text": text}])


def make_client(recorder: Recorder, **kwargs) -> HuggingFaceClient:
    return HuggingFaceClient(
        api_key=kwargs.pop("api_key", "hf_test"),
        transport=httpx.MockTransport(recorder),
        retry_delay=0.0,
        **kwargs,
    )


# =============================================================================
# Prompts
# =============================================================================


class TestPrompts:
    def test_summary_prompt_english(self):
        prompt = build_summary_prompt("Some text.", "concise", "en")

        assert prompt.startswith("<s>[INST] Write a brief, concise summary")
        assert "Write the summary in" not in prompt
        assert "Text to summarize:\nSome text." in prompt
        assert prompt.endswith("[/INST]")

    def test_summary_prompt_other_language(self):
        prompt = build_summary_prompt("Some text.", "academic", "fr")

        assert "academic-style" in prompt
        assert "Write the summary in French." in prompt

    def test_combine_prompt(self):
        prompt = build_combine_prompt(["First part.", "Second part."], "simple", "de")

        assert "in German" in prompt
        assert "Part 1:\nFirst part." in prompt
        assert "Part 2:\nSecond part." in prompt


# =============================================================================
# Client
# =============================================================================


class TestHuggingFaceClient:
    async def test_text_generation(self):
        recorder = Recorder(generated("  A short summary.  "))

        async with make_client(recorder) as client:
            text = await client.text_generation(DEFAULT_SUMMARY_MODEL, "prompt", {"max_new_tokens": 10})

        assert text == "A short summary."
        request = recorder.requests[0]
        assert request.url.path == f"/models/{DEFAULT_SUMMARY_MODEL}"
        assert request.headers["Authorization"] == "Bearer hf_test"
        assert recorder.body(0)["parameters"] == {"max_new_tokens": 10}
        assert recorder.body(0)["options"] == {"wait_for_model": True}

    async def test_prompt_echo_removed(self):
        recorder = Recorder(generated("<s>[INST] summarize [/INST] The summary."))

        async with make_client(recorder) as client:
            assert await client.text_generation("m/model", "prompt", {}) == "The summary."

    async def test_no_api_key_no_auth_header(self):
        recorder = Recorder(generated("ok"))

        async with make_client(recorder, api_key=None) as client:
            await client.text_generation("m/model", "prompt", {})

        assert "Authorization" not in recorder.requests[0].headers

    async def test_loading_model_is_retried(self):
        recorder = Recorder(
            httpx.Response(503, json={"error": "Model is currently loading"}),
            generated("Recovered."),
        )

        async with make_client(recorder) as client:
            assert await client.text_generation("m/model", "prompt", {}) == "Recovered."

        assert len(recorder.requests) == 2

    async def test_retries_exhausted(self):
        recorder = Recorder(httpx.Response(503))

        async with make_client(recorder, max_attempts=2) as client:
            with pytest.raises(ServiceUnavailableError):
                await client.text_generation("m/model", "prompt", {})

        assert len(recorder.requests) == 2

    async def test_rate_limit_is_retried(self):
        recorder = Recorder(
            httpx.Response(429, headers={"Retry-After": "0"}),
            generated("After the wait."),
        )

        async with make_client(recorder) as client:
            assert await client.text_generation("m/model", "prompt", {}) == "After the wait."

        assert len(recorder.requests) == 2

    @pytest.mark.parametrize(
        ("error", "attempt_number", "low", "high"),
        [
            (ServiceUnavailableError("HTTP 503"), 1, 0.5, 0.55),
            (ServiceUnavailableError("HTTP 503"), 3, 2.0, 2.2),
            (RateLimitError(retry_after=4.0), 1, 4.0, 4.4),
            (ServiceUnavailableError("HTTP 503"), 10, 30.0, 30.0),
        ],
    )
    def test_retry_wait(self, error, attempt_number, low, high):
        client = HuggingFaceClient(api_key="hf_test", retry_delay=0.5)
        outcome: Future = Future()
        outcome.set_exception(error)

        wait = client._retry_wait(SimpleNamespace(attempt_number=attempt_number, outcome=outcome))

        assert low <= wait <= high

    async def test_unauthorized_not_retried(self):
        recorder = Recorder(httpx.Response(401))

        async with make_client(recorder) as client:
            with pytest.raises(UpstreamError) as exc_info:
                await client.text_generation("m/model", "prompt", {})

        assert exc_info.value.status_code == 401
        assert len(recorder.requests) == 1

    async def test_error_payload(self):
        recorder = Recorder(httpx.Response(200, json={"error": "Input is too long"}))

        async with make_client(recorder) as client:
            with pytest.raises(UpstreamError, match="Input is too long"):
                await client.text_generation("m/model", "prompt", {})

    async def test_text_to_speech_returns_bytes(self):
        recorder = Recorder(httpx.Response(200, content=FLAC_PAYLOAD))

        async with make_client(recorder) as client:
            audio = await client.text_to_speech("facebook/mms-tts-eng", "Hello there")

        assert audio == FLAC_PAYLOAD
        assert recorder.body(0)["inputs"] == "Hello there"


# =============================================================================
# Text generator
# =============================================================================


class TestHuggingFaceTextGenerator:
    async def test_single_chunk(self):
        recorder = Recorder(generated("\n Elizabeth refuses Darcy. \n\n She changes her mind.\n"))

        async with make_client(recorder) as client:
            summary = await HuggingFaceTextGenerator(client).summarize("A short book.", "en", "concise")

        assert summary == "Elizabeth refuses Darcy.\nShe changes her mind."
        assert len(recorder.requests) == 1

    async def test_empty_output_retried_with_simple_parameters(self):
        recorder = Recorder(generated(""), generated("Second pass."))

        async with make_client(recorder) as client:
            summary = await HuggingFaceTextGenerator(client).summarize("A short book.", "en", "concise")

        assert summary == "Second pass."
        assert recorder.body(1)["parameters"] == SIMPLE_GENERATION_PARAMETERS

    async def test_transient_failure_retried_with_simple_parameters(self):
        recorder = Recorder(
            httpx.Response(503),
            httpx.Response(503),
            httpx.Response(503),
            generated("Simple pass."),
        )

        async with make_client(recorder) as client:
            summary = await HuggingFaceTextGenerator(client).summarize("A short book.", "en", "concise")

        assert summary == "Simple pass."
        assert len(recorder.requests) == 4
        assert recorder.body(3)["parameters"] == SIMPLE_GENERATION_PARAMETERS

    async def test_permanent_failure_propagates(self):
        recorder = Recorder(httpx.Response(403))

        async with make_client(recorder) as client:
            with pytest.raises(UpstreamError):
                await HuggingFaceTextGenerator(client).summarize("A short book.", "en", "concise")

        assert len(recorder.requests) == 1

    async def test_long_text_is_chunked_and_combined(self):
        recorder = Recorder(generated("Partial summary."))
        text = "word " * 6000

        async with make_client(recorder) as client:
            summary = await HuggingFaceTextGenerator(client).summarize(text, "es", "detailed")

        assert summary == "Partial summary."
        prompts = [recorder.body(i)["inputs"] for i in range(len(recorder.requests))]
        assert len(prompts) >= 3
        assert all("Write the summary in Spanish." in p for p in prompts[:-1])
        assert prompts[-1].startswith("<s>[INST] Combine these chapter summaries")
        assert "in Spanish" in prompts[-1]

    async def test_empty_text(self):
        recorder = Recorder(generated("unused"))

        async with make_client(recorder) as client:
            assert await HuggingFaceTextGenerator(client).summarize("   ", "en", "concise") == ""

        assert recorder.requests == []


# =============================================================================
# Speech synthesizer
# =============================================================================


class TestHuggingFaceSpeechSynthesizer:
    @pytest.mark.parametrize(
        ("language", "voice", "model"),
        [
            ("en", None, "facebook/mms-tts-eng"),
            ("fr", None, "facebook/mms-tts-fra"),
            ("ko", None, "facebook/mms-tts-eng"),
            ("xx", None, "facebook/mms-tts-eng"),
            ("de", "female", "facebook/mms-tts-deu"),
            ("en", "espnet/kan-bayashi_ljspeech_vits", "espnet/kan-bayashi_ljspeech_vits"),
        ],
    )
    def test_model_for(self, language, voice, model):
        synth = HuggingFaceSpeechSynthesizer(client=None)
        assert synth.model_for(language, voice) == model

    async def test_synthesize(self):
        recorder = Recorder(httpx.Response(200, content=FLAC_PAYLOAD))

        async with make_client(recorder) as client:
            audio = await HuggingFaceSpeechSynthesizer(client).synthesize("Bonjour", "fr")

        assert audio == FLAC_PAYLOAD
        assert recorder.requests[0].url.path == "/models/facebook/mms-tts-fra"

    async def test_long_text_truncated(self):
        recorder = Recorder(httpx.Response(200, content=FLAC_PAYLOAD))

        async with make_client(recorder) as client:
            await HuggingFaceSpeechSynthesizer(client, max_words=10).synthesize("word " * 50, "en")

        sent = recorder.body(0)["inputs"]
        assert sent == " ".join(["word"] * 10) + "..."

    async def test_tiny_payload_rejected(self):
        recorder = Recorder(httpx.Response(200, content=b"\x00" * 100))

        async with make_client(recorder) as client:
            with pytest.raises(UpstreamError, match="invalid audio payload") as exc_info:
                await HuggingFaceSpeechSynthesizer(client).synthesize("Hello", "en")

        assert exc_info.value.retryable is False
