# shopmate/providers/gemini_providers.py

"""Gemini-backed relevance scoring and verdict text generation."""

import json
import logging
from typing import Any

from google.genai import types

from shopmate.providers.base import TextGeneration
from shopmate.providers.errors import MalformedResponseError
from shopmate.providers.gemini_client import (
    GeminiClient,
    candidate_text,
    first_candidate,
)

logger = logging.getLogger("shopmate.providers")

RELEVANCE_INSTRUCTION = """\
You are an e-commerce relevance engine analysing product search results. \
Your goal is to score how well each product title matches the user's query.

For each product, return two scores:

1. relevanceScore: 0.0 to 1.0 (higher is a better match to the query).
2. irrelevancePenalty: 0.0 or 0.9.
   - Use 0.9 if the product is clearly an ACCESSORY (case, charger, \
screen protector, ...) AND the query is for a PRIMARY PRODUCT \
("phone", "laptop", "smartwatch", ...).
   - Use 0.0 otherwise, including when the query itself is for an \
accessory such as "phone case".

Return ONLY a JSON array. No introductory or concluding text."""

_RELEVANCE_SCHEMA = types.Schema(
    type=types.Type.ARRAY,
    items=types.Schema(
        type=types.Type.OBJECT,
        properties={
            "id": types.Schema(type=types.Type.STRING),
            "relevanceScore": types.Schema(type=types.Type.NUMBER),
            "irrelevancePenalty": types.Schema(type=types.Type.NUMBER),
        },
        required=["id", "relevanceScore", "irrelevancePenalty"],
    ),
)

# finish_reason values that make the text unusable
_BLOCKED_REASONS = frozenset(
    {types.FinishReason.SAFETY, types.FinishReason.RECITATION}
)
_TRUNCATED_REASONS = frozenset({types.FinishReason.MAX_TOKENS})


class GeminiRelevanceProvider:
    """Ask Gemini for per-candidate relevance scores as structured JSON."""

    def __init__(self, client: GeminiClient) -> None:
        self.client = client

    @staticmethod
    def build_prompt(
        query: str, candidates: list[dict[str, Any]],
    ) -> str:
        return (
            f'User Query: "{query}"\n\n'
            "Products to analyze:\n"
            f"{json.dumps(candidates, indent=2, ensure_ascii=False)}"
        )

    def score(
        self, query: str, candidates: list[dict[str, Any]],
    ) -> Any:
        response = self.client.generate_content(
            self.build_prompt(query, candidates),
            types.GenerateContentConfig(
                system_instruction=RELEVANCE_INSTRUCTION,
                response_mime_type="application/json",
                response_schema=_RELEVANCE_SCHEMA,
                temperature=0.1,
            ),
        )
        candidate = first_candidate(response)
        text = candidate_text(candidate) if candidate is not None else None
        if not text:
            msg = "No structured data returned from Gemini"
            raise MalformedResponseError(msg)
        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            msg = (
                f"Failed to parse relevance JSON: {exc}. "
                f"Raw text: {text[:100]}..."
            )
            raise MalformedResponseError(msg) from exc


class GeminiTextProvider:
    """Generate the recommendation paragraph with Gemini."""

    def __init__(
        self,
        client: GeminiClient,
        temperature: float = 0.7,
        max_output_tokens: int = 1024,
    ) -> None:
        self.client = client
        self.temperature = temperature
        self.max_output_tokens = max_output_tokens

    def generate(
        self, instruction: str, prompt: str,
    ) -> TextGeneration:
        response = self.client.generate_content(
            prompt,
            types.GenerateContentConfig(
                system_instruction=instruction,
                temperature=self.temperature,
                max_output_tokens=self.max_output_tokens,
                top_p=0.95,
                top_k=40,
            ),
        )
        candidate = first_candidate(response)
        if candidate is None:
            logger.error(
                "Unexpected Gemini response structure: %s",
                str(response)[:300],
            )
            return TextGeneration(failure_reason="invalid_structure")

        finish_reason = candidate.finish_reason
        if finish_reason in _BLOCKED_REASONS:
            logger.warning("Gemini response blocked: %s", finish_reason)
            return TextGeneration(failure_reason="blocked")
        if finish_reason in _TRUNCATED_REASONS:
            logger.warning("Gemini response cut off: %s", finish_reason)
            return TextGeneration(failure_reason="truncated")

        text = candidate_text(candidate)
        if text is None:
            return TextGeneration(failure_reason="invalid_structure")
        text = text.strip()
        if not text:
            return TextGeneration(failure_reason="empty")
        return TextGeneration(text=text)
