# shopmate/providers/base.py

"""Contracts for the external relevance and text-generation providers."""

from dataclasses import dataclass
from typing import Any, Protocol


class RelevanceProvider(Protocol):
    """Scores candidates against a query.

    ``candidates`` is a list of ``{"id", "title", "is_accessory"}``
    dicts. The return value should be a list of
    ``{"id", "relevanceScore", "irrelevancePenalty"}`` dicts; it is
    validated by the caller, so providers may return whatever they
    parsed. Failures are raised as exceptions.
    """

    def score(
        self, query: str, candidates: list[dict[str, Any]],
    ) -> Any: ...


@dataclass(frozen=True)
class TextGeneration:
    """Text returned by a provider, or the reason there is none.

    ``failure_reason`` is one of ``"invalid_structure"``, ``"blocked"``,
    ``"truncated"`` or ``"empty"`` when set.
    """

    text: str = ""
    failure_reason: str = ""

    @property
    def ok(self) -> bool:
        return not self.failure_reason and bool(self.text.strip())


class TextProvider(Protocol):
    """Generates prose from an instruction and a prompt."""

    def generate(
        self, instruction: str, prompt: str,
    ) -> TextGeneration: ...
