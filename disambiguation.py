"""
Human resolution of an ambiguous lookup.

The engine hands out a DisambiguationBroker while it waits in
AWAITING_DISAMBIGUATION. A front end (selector dialog, terminal prompt)
browses candidates and covers through it and applies exactly one of
select_cover / manual_url / skip.
"""
from dataclasses import replace
from typing import Optional, Tuple

from activity_log import emit_log
from enrichment_engine import fill_missing
from errors import InvalidTransitionError, ProviderError
from game_models import Candidate, Cover, DetailResult, GameMetadata, Item, ItemStatus, PendingDisambiguation

# Sentinel id for covers typed in by hand
MANUAL_COVER_ID = -1
MANUAL_COVER_SIZE = (600, 900)
MANUAL_COVER_SCORE = 100


def manual_cover(url: str) -> Cover:
    url = (url or "").strip()
    if not url:
        raise ValueError("Cover URL is empty")
    width, height = MANUAL_COVER_SIZE
    return Cover(
        id=MANUAL_COVER_ID, full_url=url, thumb_url=url, width=width, height=height,
        score=MANUAL_COVER_SCORE, tags=("manual",), style="manual",
    )


class DisambiguationBroker:
    def __init__(self, engine, pending: PendingDisambiguation, translator=None, callbacks=None):
        self._engine = engine
        self._pending = pending
        self._translator = translator
        self.callbacks = callbacks
        self._used = False

    @property
    def item(self) -> Item:
        return self._pending.item

    @property
    def candidates(self) -> Tuple[Candidate, ...]:
        return self._pending.candidates

    @property
    def provider_id(self) -> str:
        return self._pending.provider_id

    @property
    def provider(self):
        return self._engine.provider_by_id(self._pending.provider_id)

    @property
    def is_resolved(self) -> bool:
        return self._used

    def load_candidate(self, candidate_id: int) -> DetailResult:
        """
        Covers and full metadata for one candidate.

        Raises:
            ProviderError: The provider call failed or the provider is gone.
        """
        provider = self.provider
        if provider is None:
            raise ProviderError(self.provider_id, "provider is no longer configured")
        detail = provider.fetch_detail(candidate_id)
        if self._translator is not None and detail.metadata is not None and detail.metadata.description:
            detail = replace(
                detail,
                metadata=replace(detail.metadata, description=self._translator.translate(detail.metadata.description)),
            )
        return detail

    def select_cover(self, cover: Optional[Cover], metadata: Optional[GameMetadata] = None) -> Item:
        """Apply a chosen cover (and the candidate's metadata) to empty fields only."""
        if cover is None and metadata is None:
            raise ValueError("Nothing selected")
        resolved = fill_missing(self.item, cover, metadata).with_status(ItemStatus.COMPLETED)
        return self._resolve(resolved, f"✓ {self.item.name}: cover selected")

    def manual_url(self, url: str) -> Item:
        """Use a hand-entered cover URL. No metadata is merged."""
        cover = manual_cover(url)
        resolved = fill_missing(self.item, cover, None).with_status(ItemStatus.COMPLETED)
        return self._resolve(resolved, f"✓ {self.item.name}: manual cover URL")

    def skip(self) -> Item:
        resolved = self.item.with_status(ItemStatus.NO_RESULTS)
        return self._resolve(resolved, f"✗ {self.item.name}: skipped")

    def search_url(self) -> str:
        provider = self.provider
        return provider.search_url(self.item.name) if provider is not None else ""

    def _resolve(self, resolved: Item, message: str) -> Item:
        if self._used:
            raise InvalidTransitionError(f"Selection for '{self.item.name}' was already applied")
        self._engine.resolve(resolved, pending=self._pending)
        self._used = True
        emit_log(self.callbacks, message)
        return resolved

    def stop_run(self) -> None:
        """Abandon the selection and stop the whole run."""
        self._engine.stop()
        self._used = True
