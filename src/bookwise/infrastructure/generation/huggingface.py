"""
Hugging Face Inference API Integration

Summaries come from an instruction-tuned text model and narration from the
Massively Multilingual Speech (MMS) text-to-speech models, both through
the hosted inference endpoint ``POST /models/{model_id}``.

API Documentation: https://huggingface.co/docs/api-inference/

Retry policy:
- 429, 5xx ("model is currently loading") and network errors are retried
  with exponential backoff (tenacity), honoring Retry-After on 429
- 401/403/404 are not retried
- Text generation then makes one more pass with simpler parameters
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
)

from bookwise.application.summary.text import chunk_text, clean_summary, truncate_words
from bookwise.infrastructure.sources.base_client import DEFAULT_USER_AGENT, BaseAPIClient
from bookwise.shared.exceptions import ParseError, UpstreamError, get_retry_delay, is_retryable_error

if TYPE_CHECKING:
    import httpx

logger = logging.getLogger(__name__)

HUGGINGFACE_API_BASE = "https://api-inference.huggingface.co"
DEFAULT_SUMMARY_MODEL = "mistralai/Mistral-7B-Instruct-v0.2"

MAX_ATTEMPTS = 3
MAX_RETRY_WAIT = 30.0
MAX_CHUNKS = 5
MIN_AUDIO_BYTES = 100

GENERATION_PARAMETERS: dict[str, Any] = {
    "max_new_tokens": 1000,
    "temperature": 0.3,
    "top_p": 0.9,
    "do_sample": True,
    "repetition_penalty": 1.2,
    "return_full_text": False,
}

# Second pass after the first one failed or came back empty
SIMPLE_GENERATION_PARAMETERS: dict[str, Any] = {
    "max_new_tokens": 500,
    "temperature": 0.1,
    "do_sample": False,
    "return_full_text": False,
}

STYLE_INSTRUCTIONS = {
    "concise": "Write a brief, concise summary focusing on the main points.",
    "detailed": "Write a comprehensive, detailed summary covering all key aspects.",
    "academic": "Write an academic-style summary with formal language.",
    "simple": "Write a simple, easy-to-understand summary for general readers.",
}

LANGUAGE_NAMES = {
    "en": "English",
    "es": "Spanish",
    "fr": "French",
    "de": "German",
    "it": "Italian",
    "pt": "Portuguese",
    "zh": "Chinese",
    "ja": "Japanese",
    "ko": "Korean",
    "ar": "Arabic",
    "hi": "Hindi",
    "ru": "Russian",
}

MMS_TTS_MODELS = {
    "en": "facebook/mms-tts-eng",
    "es": "facebook/mms-tts-spa",
    "fr": "facebook/mms-tts-fra",
    "de": "facebook/mms-tts-deu",
    "it": "facebook/mms-tts-ita",
    "pt": "facebook/mms-tts-por",
    "zh": "facebook/mms-tts-cmn",
    "ja": "facebook/mms-tts-jpn",
    "ar": "facebook/mms-tts-ara",
    "hi": "facebook/mms-tts-hin",
    "ru": "facebook/mms-tts-rus",
}
DEFAULT_TTS_MODEL = MMS_TTS_MODELS["en"]


# =============================================================================
# Prompts
# =============================================================================

def _language_instruction(language: str) -> str:
    if language == "en" or language not in LANGUAGE_NAMES:
        return ""
    return f" Write the summary in {LANGUAGE_NAMES[language]}."


def build_summary_prompt(content: str, style: str, language: str) -> str:
    """Mistral instruction prompt for one piece of text."""
    style_instruction = STYLE_INSTRUCTIONS.get(style, STYLE_INSTRUCTIONS["concise"])
    return (
        f"<s>[INST] {style_instruction}{_language_instruction(language)}\n\n"
        f"Text to summarize:\n{content}\n\n"
        "Provide only the summary, no additional commentary.\n[/INST]"
    )


def build_combine_prompt(partials: list[str], style: str, language: str) -> str:
    """Prompt that merges per-chunk summaries into one."""
    in_language = f" in {LANGUAGE_NAMES[language]}" if language != "en" and language in LANGUAGE_NAMES else ""
    sections = "\n\n".join(f"Part {i}:\n{text}" for i, text in enumerate(partials, 1))
    return (
        f"<s>[INST] Combine these chapter summaries into one cohesive 3-page summary{in_language}.\n"
        f"Keep the {style} style. Focus on the main narrative arc and key themes.\n\n"
        f"Chapter summaries:\n{sections}\n\n"
        "Provide only the final summary, no additional text.\n[/INST]"
    )


# =============================================================================
# HTTP client
# =============================================================================

class HuggingFaceClient(BaseAPIClient):
    """
    Hosted inference client.

    Retries are driven by tenacity here instead of the base class loop, so
    a 401 fails on the first attempt while a loading model gets retried.

    Usage:
        client = HuggingFaceClient(api_key="hf_...")
        text = await client.text_generation(DEFAULT_SUMMARY_MODEL, prompt, GENERATION_PARAMETERS)
        audio = await client.text_to_speech("facebook/mms-tts-eng", "Hello")
    """

    _service_name = "HuggingFace"
    _MAX_RETRIES = 0

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str = HUGGINGFACE_API_BASE,
        timeout: float = 120.0,
        *,
        max_attempts: int = MAX_ATTEMPTS,
        user_agent: str = DEFAULT_USER_AGENT,
        transport: httpx.AsyncBaseTransport | None = None,
        retry_delay: float = 1.0,
    ):
        headers = {"User-Agent": user_agent}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        else:
            logger.warning("No Hugging Face API key configured; requests use the anonymous quota")
        self._max_attempts = max_attempts
        super().__init__(
            base_url=base_url,
            timeout=timeout,
            min_interval=0.0,
            headers=headers,
            transport=transport,
            retry_delay=retry_delay,
        )

    def _parse_response(self, response: httpx.Response, expect_json: bool) -> Any:
        if expect_json:
            return response.json()
        return response.content

    def _retry_wait(self, retry_state: RetryCallState) -> float:
        """Exponential backoff from ``retry_delay``; a 429's Retry-After takes precedence."""
        error = retry_state.outcome.exception() if retry_state.outcome is not None else None
        return get_retry_delay(error, retry_state.attempt_number - 1, self._retry_delay, MAX_RETRY_WAIT)

    async def _post_model(self, model: str, payload: dict[str, Any], *, expect_json: bool) -> Any:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self._max_attempts),
            wait=self._retry_wait,
            retry=retry_if_exception(is_retryable_error),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                return await self._make_request(
                    f"/models/{model}",
                    method="POST",
                    data=payload,
                    expect_json=expect_json,
                )
        raise UpstreamError(f"{model}: no attempt was made", service=self._service_name)

    async def text_generation(self, model: str, prompt: str, parameters: dict[str, Any]) -> str:
        """
        Generate text for ``prompt``.

        Returns:
            The generated text, prompt echo removed
        """
        data = await self._post_model(
            model,
            {"inputs": prompt, "parameters": parameters, "options": {"wait_for_model": True}},
            expect_json=True,
        )
        if isinstance(data, list) and data:
            data = data[0]
        if not isinstance(data, dict):
            raise ParseError(f"unexpected generation payload {type(data).__name__}", source=self._service_name)
        if "error" in data:
            raise UpstreamError(f"{self._service_name}: {data['error']}", service=self._service_name)

        text = str(data.get("generated_text") or "")
        if "[/INST]" in text:
            text = text.rsplit("[/INST]", 1)[1]
        return text.strip()

    async def text_to_speech(self, model: str, text: str) -> bytes:
        """Synthesize ``text``; returns the encoded audio (usually FLAC)."""
        return await self._post_model(
            model,
            {"inputs": text, "options": {"wait_for_model": True}},
            expect_json=False,
        )


# =============================================================================
# Collaborators
# =============================================================================

class HuggingFaceTextGenerator:
    """
    TextGenerator over an instruction model.

    Long texts are summarized map-reduce style: up to ``max_chunks``
    overlapping chunks are summarized one by one and the partial summaries
    are combined in a final call.
    """

    def __init__(
        self,
        client: HuggingFaceClient,
        model: str = DEFAULT_SUMMARY_MODEL,
        *,
        max_chunks: int = MAX_CHUNKS,
    ):
        self._client = client
        self.model = model
        self._max_chunks = max_chunks

    async def summarize(self, text: str, language: str, style: str) -> str:
        chunks = chunk_text(text)[: self._max_chunks]
        if not chunks:
            return ""
        if len(chunks) == 1:
            return await self._generate(build_summary_prompt(chunks[0], style, language))

        logger.info(f"Summarizing {len(chunks)} chunks with {self.model}")
        partials: list[str] = []
        for index, chunk in enumerate(chunks, 1):
            partial = await self._generate(build_summary_prompt(chunk, style, language))
            logger.debug(f"Chunk {index}/{len(chunks)}: {len(partial)} chars")
            if partial:
                partials.append(partial)
        if not partials:
            return ""
        if len(partials) == 1:
            return partials[0]
        return await self._generate(build_combine_prompt(partials, style, language))

    async def _generate(self, prompt: str) -> str:
        try:
            result = clean_summary(
                await self._client.text_generation(self.model, prompt, GENERATION_PARAMETERS)
            )
        except UpstreamError as e:
            if not e.retryable:
                raise
            logger.warning(f"Generation failed ({e}), retrying with simpler parameters")
        else:
            if result:
                return result
            logger.warning("Generation returned no text, retrying with simpler parameters")

        return clean_summary(
            await self._client.text_generation(self.model, prompt, SIMPLE_GENERATION_PARAMETERS)
        )


class HuggingFaceSpeechSynthesizer:
    """
    SpeechSynthesizer over the MMS text-to-speech models.

    A voice containing "/" is taken as a model id; any other voice selects
    the language's MMS model. Languages without a model use English.
    """

    def __init__(self, client: HuggingFaceClient, *, max_words: int = 500):
        self._client = client
        self._max_words = max_words

    def model_for(self, language: str, voice: str | None = None) -> str:
        if voice and "/" in voice:
            return voice
        return MMS_TTS_MODELS.get(language, DEFAULT_TTS_MODEL)

    async def synthesize(self, text: str, language: str, voice: str | None = None) -> bytes:
        model = self.model_for(language, voice)
        audio = await self._client.text_to_speech(model, truncate_words(text, self._max_words))
        if len(audio) <= MIN_AUDIO_BYTES:
            raise UpstreamError(
                f"{model} returned an invalid audio payload ({len(audio)} bytes)",
                service="HuggingFace",
                retryable=False,
            )
        return audio
