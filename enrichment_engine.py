"""
Enrichment engine.

Walks the input list one game at a time, asks the providers in order, and folds
every outcome into the run state. Exactly one lookup is in flight at any time.
Ambiguous results stop automatic progress until a DisambiguationBroker applies
a human decision.

    IDLE -> RUNNING <-> PAUSED
    RUNNING -> AWAITING_DISAMBIGUATION -> RUNNING
    RUNNING / PAUSED / AWAITING_DISAMBIGUATION -> STOPPED   (terminal until reset)

Control calls (pause/stop/resume) may come from another thread. While a lookup
is outstanding they are only recorded, and applied once its outcome is known.
"""
import threading
import time
from dataclasses import replace
from typing import Callable, List, Optional, Sequence

from activity_log import emit, emit_log, emit_progress
from errors import ConfigError, InputValidationError, InvalidTransitionError
from game_models import (
    Candidate, Cover, EngineState, ExactMatch, Failure, GameMetadata, Item,
    ItemStatus, KnownFields, PendingDisambiguation, RunMode, Suggestions,
)
from name_normalizer import normalize
from providers import ProviderGateway
from result_merger import merge_results

DEFAULT_STEP_DELAY_S = 0.1


# ==========================
# State transitions
# ==========================
def fill_missing(item: Item, cover: Optional[Cover] = None, metadata: Optional[GameMetadata] = None) -> Item:
    """New copy of item with only its empty fields filled in."""
    updates = {}
    if cover is not None and not item.cover_url:
        updates["cover_url"] = cover.full_url
    if metadata is not None:
        if metadata.name and not item.display_name_override and metadata.name != item.name:
            updates["display_name_override"] = metadata.name
        if metadata.year and not item.release_year:
            updates["release_year"] = metadata.year
        if metadata.description and not item.description:
            updates["description"] = metadata.description
    return replace(item, extra=dict(item.extra), **updates)


def adds_anything(item: Item, cover: Optional[Cover], metadata: Optional[GameMetadata]) -> bool:
    merged = fill_missing(item, cover, metadata)
    return (merged.cover_url, merged.display_name_override, merged.release_year, merged.description) != \
        (item.cover_url, item.display_name_override, item.release_year, item.description)


def record_outcome(state: EngineState, item: Item) -> bool:
    """
    Store the outcome for the item under the cursor and advance.

    Dedup-on-insert: an existing entry with the same name is never replaced.
    Returns True if the item was inserted.
    """
    inserted = item.name not in state.accumulated
    if inserted:
        state.accumulated[item.name] = item
    state.cursor += 1
    return inserted


def begin_disambiguation(state: EngineState, item: Item, candidates: Sequence[Candidate], provider_id: str) -> None:
    state.pending = PendingDisambiguation(item=item, candidates=tuple(candidates), provider_id=provider_id)
    state.run_mode = RunMode.AWAITING_DISAMBIGUATION


def finish_run(state: EngineState) -> List[Item]:
    state.run_mode = RunMode.IDLE
    return merge_results(state.items, state.accumulated)


def validate_items(items: Sequence[Item]) -> List[Item]:
    """Input contract: every record is an Item with a non-empty name."""
    checked = []
    for index, item in enumerate(items):
        if not isinstance(item, Item):
            raise InputValidationError(f"Row {index + 1}: expected a game record, got {type(item).__name__}")
        if not (item.name or "").strip():
            raise InputValidationError(f"Row {index + 1}: game name is empty")
        checked.append(replace(item, extra=dict(item.extra)))
    return checked


class _Outcome:
    """What one lookup decided for the item under the cursor."""

    def __init__(self, item: Item, suggestions: Optional[Suggestions] = None, message: str = ""):
        self.item = item
        self.suggestions = suggestions
        self.message = message


# ==========================
# Engine
# ==========================
class EnrichmentEngine:
    """
    Sequential, resumable enrichment run over one input list.

    Args:
        providers: Lookup backends in fallback order.
        step_delay: Minimum pause (seconds) between automatic steps in run().
        callbacks: dict (or object with signals) with any of: log, progress,
            state, item, finished, request_disambiguation.
        translator: Optional DescriptionTranslator handed to brokers.
        sleep: Injected for tests.
    """

    def __init__(self, providers: Sequence[ProviderGateway], step_delay: float = DEFAULT_STEP_DELAY_S,
                 callbacks=None, translator=None, sleep: Callable[[float], None] = time.sleep):
        self.providers = list(providers)
        self.translator = translator
        self.step_delay = step_delay
        self.callbacks = callbacks
        self._sleep = sleep
        self.state = EngineState()
        self._lock = threading.RLock()
        self._in_flight = False
        self._pause_requested = False
        self._stop_requested = False
        # Bumped by start/reset so results of an abandoned lookup are dropped
        self._generation = 0

    # ---------- read access ----------
    @property
    def run_mode(self) -> RunMode:
        return self.state.run_mode

    @property
    def cursor(self) -> int:
        return self.state.cursor

    @property
    def pending(self) -> Optional[PendingDisambiguation]:
        return self.state.pending

    def results(self) -> List[Item]:
        """Merged export set for the run so far."""
        with self._lock:
            return merge_results(self.state.items, self.state.accumulated)

    def snapshot(self) -> dict:
        with self._lock:
            return self.state.snapshot()

    def provider_by_id(self, provider_id: str) -> Optional[ProviderGateway]:
        return next((p for p in self.providers if p.provider_id == provider_id), None)

    # ---------- control ----------
    def load(self, items: Sequence[Item]) -> None:
        """Install a new input list. Only valid while IDLE."""
        checked = validate_items(items)
        with self._lock:
            if self.state.run_mode != RunMode.IDLE:
                raise InvalidTransitionError(f"Cannot load a new list while {self.state.run_mode.value}")
            self._generation += 1
            self.state = EngineState(items=checked)
            self._clear_requests()
        emit_log(self.callbacks, f"[INFO] Loaded {len(checked)} games")
        emit_progress(self.callbacks, 0, len(checked))

    def start(self, items: Optional[Sequence[Item]] = None) -> None:
        """Fresh run from the first item. Only valid while IDLE."""
        if items is not None:
            self.load(items)
        with self._lock:
            if self.state.run_mode != RunMode.IDLE:
                raise InvalidTransitionError(f"Cannot start while {self.state.run_mode.value}; reset first")
            if not self.state.items:
                raise InputValidationError("No games loaded")
            if not any(p.is_available() for p in self.providers):
                raise ConfigError("No lookup provider is configured (check API keys and the providers list)")
            self._generation += 1
            self._clear_requests()
            self.state.cursor = 0
            self.state.accumulated = {}
            self.state.pending = None
            self.state.run_mode = RunMode.RUNNING
            total = len(self.state.items)
        emit_log(self.callbacks, f"[INFO] Starting run over {total} games")
        emit_progress(self.callbacks, 0, total)
        self._emit_state()

    def resume(self) -> None:
        with self._lock:
            mode = self.state.run_mode
            if mode == RunMode.IDLE:
                start_fresh = True
            elif mode == RunMode.PAUSED:
                start_fresh = False
                self.state.run_mode = RunMode.RUNNING
            elif mode == RunMode.RUNNING:
                # Pause requested mid-lookup and taken back before it applied
                self._pause_requested = False
                return
            else:
                raise InvalidTransitionError(f"Cannot resume while {mode.value}")
        if start_fresh:
            self.start()
            return
        emit_log(self.callbacks, f"[INFO] Resuming at game {self.state.cursor + 1}")
        self._emit_state()

    def pause(self) -> None:
        with self._lock:
            mode = self.state.run_mode
            if mode == RunMode.PAUSED:
                return
            if mode == RunMode.AWAITING_DISAMBIGUATION or (mode == RunMode.RUNNING and self._in_flight):
                self._pause_requested = True
                emit_log(self.callbacks, "[INFO] Pause requested, applying after the current game")
                return
            if mode != RunMode.RUNNING:
                raise InvalidTransitionError(f"Cannot pause while {mode.value}")
            self.state.run_mode = RunMode.PAUSED
        emit_log(self.callbacks, "[INFO] Paused")
        self._emit_state()

    def stop(self) -> None:
        with self._lock:
            mode = self.state.run_mode
            if mode == RunMode.STOPPED:
                return
            if mode == RunMode.IDLE:
                raise InvalidTransitionError("Nothing to stop")
            if self._in_flight:
                self._stop_requested = True
                emit_log(self.callbacks, "[INFO] Stop requested, discarding the lookup in flight")
                return
            self._enter_stopped()
        self._emit_state()

    def reset(self) -> None:
        """Back to IDLE with an empty result set. The loaded list is kept."""
        with self._lock:
            self._generation += 1
            self._clear_requests()
            self.state.cursor = 0
            self.state.accumulated = {}
            self.state.pending = None
            self.state.run_mode = RunMode.IDLE
        emit_log(self.callbacks, "[INFO] Reset")
        emit_progress(self.callbacks, 0, len(self.state.items))
        self._emit_state()

    def _clear_requests(self) -> None:
        self._pause_requested = False
        self._stop_requested = False

    def _enter_stopped(self) -> None:
        self.state.run_mode = RunMode.STOPPED
        self.state.pending = None
        self._clear_requests()
        emit_log(self.callbacks, f"[INFO] Stopped at game {self.state.cursor + 1} of {len(self.state.items)}")

    def _emit_state(self) -> None:
        emit(self.callbacks, "state", self.state.run_mode)

    # ---------- processing ----------
    def step(self) -> RunMode:
        """
        Process the item under the cursor. Never raises: every outcome ends up
        in an item status or a run-mode change.
        """
        with self._lock:
            state = self.state
            if state.run_mode != RunMode.RUNNING or self._in_flight:
                return state.run_mode

            if state.cursor >= len(state.items):
                merged = finish_run(state)
                done = sum(1 for i in merged if i.status == ItemStatus.COMPLETED)
                emit_log(self.callbacks, f"[INFO] Run complete: {done}/{len(merged)} games with data")
                emit(self.callbacks, "finished", merged)
                self._emit_state()
                return state.run_mode

            item = state.items[state.cursor]
            previous = state.accumulated.get(item.name)
            if previous is not None and previous.status == ItemStatus.COMPLETED:
                emit_log(self.callbacks, f"[INFO] Skipping {item.name}: already completed")
                state.cursor += 1
                emit_progress(self.callbacks, state.cursor, len(state.items))
                return state.run_mode

            generation = self._generation
            self._in_flight = True
            position = (state.cursor + 1, len(state.items))

        emit(self.callbacks, "current_item", item.name, position[0], position[1])
        try:
            outcome = self._lookup(item)
        except Exception as e:
            outcome = _Outcome(item.with_status(ItemStatus.ERRORED), message=f"✗ {item.name}: error - {e}")
        except BaseException:
            # KeyboardInterrupt and friends: leave the item unprocessed
            with self._lock:
                self._in_flight = False
            raise

        with self._lock:
            self._in_flight = False
            if generation != self._generation:
                return self.state.run_mode
            if self._stop_requested:
                self._enter_stopped()
                self._emit_state()
                return self.state.run_mode

            emit_log(self.callbacks, outcome.message)
            if outcome.suggestions is not None:
                begin_disambiguation(state, outcome.item, outcome.suggestions.candidates,
                                     outcome.suggestions.provider_id)
            else:
                record_outcome(state, outcome.item)
                emit(self.callbacks, "item", outcome.item)
                emit_progress(self.callbacks, state.cursor, len(state.items))

            if self._pause_requested and state.run_mode == RunMode.RUNNING:
                self._pause_requested = False
                state.run_mode = RunMode.PAUSED
                emit_log(self.callbacks, "[INFO] Paused")
            if state.run_mode != RunMode.RUNNING:
                self._emit_state()
            return state.run_mode

    def _lookup(self, item: Item) -> _Outcome:
        """Ask providers in order. First usable exact match wins."""
        query = normalize(item.name) or item.name.strip()
        known = KnownFields.from_item(item)
        if query != item.name:
            emit_log(self.callbacks, f"[DEBUG] Searching '{item.name}' as '{query}'")

        for provider in self.providers:
            if not provider.is_available():
                emit_log(self.callbacks, f"[DEBUG] {provider.display_name} not configured, skipping")
                continue

            result = provider.lookup(query, known)

            if isinstance(result, ExactMatch):
                usable = result.cover is not None or (
                    known.has_image and adds_anything(item, None, result.metadata))
                if usable:
                    enriched = fill_missing(item, result.cover, result.metadata).with_status(ItemStatus.COMPLETED)
                    what = "cover found" if result.cover is not None else "metadata found"
                    return _Outcome(enriched, message=f"✓ {item.name}: {what} on {provider.display_name}")
                emit_log(self.callbacks, f"[DEBUG] {provider.display_name}: exact match for '{query}' has nothing new")
            elif isinstance(result, Suggestions):
                if result.candidates:
                    return _Outcome(
                        item, suggestions=result,
                        message=f"? {item.name}: {len(result.candidates)} similar game(s) on "
                                f"{provider.display_name}, waiting for selection",
                    )
            elif isinstance(result, Failure):
                # Failures are final for this run, no fallback to later providers
                return _Outcome(item.with_status(ItemStatus.ERRORED),
                                message=f"✗ {item.name}: error - {result.reason}")

        return _Outcome(item.with_status(ItemStatus.NO_RESULTS), message=f"✗ {item.name}: no results")

    def resolve(self, resolved: Item, pending: Optional[PendingDisambiguation] = None) -> RunMode:
        """
        Apply a human decision for the pending item. Used by DisambiguationBroker.

        `pending` ties the decision to one specific wait; a decision made for an
        earlier wait (before a reset or stop) is rejected.
        """
        with self._lock:
            state = self.state
            if state.run_mode != RunMode.AWAITING_DISAMBIGUATION or state.pending is None:
                raise InvalidTransitionError(f"No pending selection while {state.run_mode.value}")
            if pending is not None and pending is not state.pending:
                raise InvalidTransitionError("Selection belongs to an earlier run")
            if resolved.name != state.pending.item.name:
                raise ValueError(f"Resolution for '{resolved.name}' does not match pending '{state.pending.item.name}'")

            record_outcome(state, resolved)
            state.pending = None
            if self._pause_requested:
                self._pause_requested = False
                state.run_mode = RunMode.PAUSED
            else:
                state.run_mode = RunMode.RUNNING
        emit(self.callbacks, "item", resolved)
        emit_progress(self.callbacks, state.cursor, len(state.items))
        self._emit_state()
        return state.run_mode

    def broker(self):
        """DisambiguationBroker for the pending item, or None."""
        from disambiguation import DisambiguationBroker
        with self._lock:
            pending = self.state.pending
            if self.state.run_mode != RunMode.AWAITING_DISAMBIGUATION or pending is None:
                return None
        return DisambiguationBroker(self, pending, translator=self.translator, callbacks=self.callbacks)

    def _has_resolver(self) -> bool:
        cb = self.callbacks
        if isinstance(cb, dict):
            return callable(cb.get("request_disambiguation"))
        return cb is not None and hasattr(cb, "request_disambiguation")

    def run(self) -> RunMode:
        """
        Step while RUNNING, with step_delay between automatic steps.

        With a request_disambiguation callback, ambiguities are handed to it
        synchronously and the run continues once resolved. Without one, run()
        returns AWAITING_DISAMBIGUATION and the caller resolves via broker().
        """
        while True:
            mode = self.step()
            if mode == RunMode.AWAITING_DISAMBIGUATION:
                broker = self.broker()
                if broker is None or not self._has_resolver():
                    return mode
                emit(self.callbacks, "request_disambiguation", broker)
                if self.state.run_mode == RunMode.AWAITING_DISAMBIGUATION:
                    emit_log(self.callbacks, "[DEBUG] Selection left open, run waits")
                    return self.state.run_mode
                continue
            if mode != RunMode.RUNNING:
                return mode
            if self.step_delay > 0:
                self._sleep(self.step_delay)
