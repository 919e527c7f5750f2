# shopmate/providers/gemini_client.py

"""Gemini ``generate_content`` calls through the google-genai SDK."""

import logging

from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from shopmate.config.settings import Settings
from shopmate.providers.errors import (
    ProviderHTTPError,
    ProviderNotConfiguredError,
)

logger = logging.getLogger("shopmate.providers")


class GeminiClient:
    """Send a single ``generate_content`` request per call.

    No retries: a failed call is simply excluded from the current run.
    The SDK client is created on first use so an unconfigured key never
    reaches the network layer.
    """

    def __init__(
        self,
        settings: Settings,
        client: genai.Client | None = None,
    ) -> None:
        self.settings = settings
        self.model = settings.GEMINI_MODEL
        self._client = client

    def _sdk_client(self) -> genai.Client:
        if self._client is None:
            self._client = genai.Client(
                api_key=self.settings.GEMINI_API_KEY,
                http_options=types.HttpOptions(
                    timeout=int(self.settings.GEMINI_TIMEOUT * 1000)
                ),
            )
        return self._client

    def generate_content(
        self,
        prompt: str,
        config: types.GenerateContentConfig,
    ) -> types.GenerateContentResponse:
        """Run one prompt against the configured model.

        Raises:
            ProviderNotConfiguredError: no API key is configured.
            ProviderHTTPError: the API answered with an error status.
        """
        if not self.settings.gemini_configured:
            msg = "GEMINI_API_KEY is not configured"
            raise ProviderNotConfiguredError(msg)

        logger.debug("Sending generate_content (model=%s)", self.model)
        try:
            return self._sdk_client().models.generate_content(
                model=self.model, contents=prompt, config=config
            )
        except genai_errors.APIError as exc:
            raise ProviderHTTPError(
                exc.code, exc.message or str(exc)
            ) from exc


def first_candidate(
    response: types.GenerateContentResponse,
) -> types.Candidate | None:
    """Return ``candidates[0]`` when it carries content, else None."""
    if not response.candidates:
        return None
    candidate = response.candidates[0]
    if candidate.content is None:
        return None
    return candidate


def candidate_text(candidate: types.Candidate) -> str | None:
    """Joined non-thought text parts, or None when there are none."""
    content = candidate.content
    if content is None or not content.parts:
        return None
    texts = [
        part.text
        for part in content.parts
        if part.text is not None and not part.thought
    ]
    return "".join(texts) if texts else None
