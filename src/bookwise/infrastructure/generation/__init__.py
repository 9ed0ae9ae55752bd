"""Text generation and speech synthesis through Hugging Face inference."""

from .huggingface import (
    DEFAULT_SUMMARY_MODEL,
    HuggingFaceClient,
    HuggingFaceSpeechSynthesizer,
    HuggingFaceTextGenerator,
    build_combine_prompt,
    build_summary_prompt,
)

__all__ = [
    "DEFAULT_SUMMARY_MODEL",
    "HuggingFaceClient",
    "HuggingFaceSpeechSynthesizer",
    "HuggingFaceTextGenerator",
    "build_combine_prompt",
    "build_summary_prompt",
]
