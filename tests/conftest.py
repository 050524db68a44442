"""Shared pytest fixtures and helpers for the enrichment tests."""

from __future__ import annotations

from typing import Any, Callable

import pytest

from enrichment_engine import EnrichmentEngine
from errors import ProviderError
from game_models import Cover, DetailResult, KnownFields, LookupResult, NotFound
from providers import ProviderGateway


def make_cover(cover_id: int = 1, url: str | None = None, width: int = 600, height: int = 900,
               score: float = 10) -> Cover:
    """Create a Cover with predictable URLs."""
    full = url or f"https://img.example/{cover_id}.png"
    return Cover(id=cover_id, full_url=full, thumb_url=full.replace(".png", "_t.png"),
                 width=width, height=height, score=score)


class FakeGateway(ProviderGateway):
    """In-memory provider.

    Args:
        results: normalized name -> LookupResult, an exception to raise, or a
            list of those consumed one per call.
        details: candidate id -> DetailResult.
        on_lookup: Called with the query before the result is returned, to
            simulate control calls arriving while a lookup is in flight.
    """

    def __init__(
        self,
        provider_id: str = "fake",
        results: dict[str, Any] | None = None,
        details: dict[int, DetailResult] | None = None,
        available: bool = True,
        on_lookup: Callable[[str], None] | None = None,
    ) -> None:
        super().__init__(None)
        self.provider_id = provider_id
        self.display_name = provider_id.upper()
        self.results = results or {}
        self.details = details or {}
        self.available = available
        self.on_lookup = on_lookup
        self.calls: list[tuple[str, KnownFields]] = []
        self.detail_calls: list[int] = []

    def is_available(self) -> bool:
        return self.available

    def lookup(self, normalized_name: str, known: KnownFields) -> LookupResult:
        self.calls.append((normalized_name, known))
        if self.on_lookup is not None:
            self.on_lookup(normalized_name)
        result = self.results.get(normalized_name, NotFound())
        if isinstance(result, list):
            # Successive calls for the same name get successive results
            result = result.pop(0) if len(result) > 1 else result[0]
        if isinstance(result, Exception):
            raise result
        return result

    def fetch_detail(self, candidate_id: int) -> DetailResult:
        self.detail_calls.append(candidate_id)
        if candidate_id not in self.details:
            raise ProviderError(self.provider_id, f"no detail for {candidate_id}")
        return self.details[candidate_id]

    def search_url(self, name: str) -> str:
        return f"https://{self.provider_id}.example/search?q={name}"


class CallbackRecorder:
    """Collects everything the engine emits through dict callbacks."""

    def __init__(self) -> None:
        self.logs: list[str] = []
        self.progress: list[tuple[int, int]] = []
        self.states: list[Any] = []
        self.items: list[Any] = []
        self.finished: list[list[Any]] = []

    def as_dict(self, resolver: Callable[[Any], None] | None = None) -> dict[str, Any]:
        callbacks: dict[str, Any] = {
            "log": self.logs.append,
            "progress": lambda done, total: self.progress.append((done, total)),
            "state": self.states.append,
            "item": self.items.append,
            "finished": self.finished.append,
        }
        if resolver is not None:
            callbacks["request_disambiguation"] = resolver
        return callbacks


@pytest.fixture
def recorder() -> CallbackRecorder:
    return CallbackRecorder()


def make_engine(*providers: ProviderGateway, callbacks: Any = None, **kwargs: Any) -> EnrichmentEngine:
    """Engine with no inter-step delay."""
    kwargs.setdefault("step_delay", 0)
    return EnrichmentEngine(list(providers), callbacks=callbacks, **kwargs)
