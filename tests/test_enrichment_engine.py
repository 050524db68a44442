"""Tests for the enrichment engine state machine."""

from __future__ import annotations

import json
from unittest.mock import MagicMock, patch

import pytest

from conftest import FakeGateway, make_cover, make_engine
from enrichment_engine import EnrichmentEngine, fill_missing, record_outcome
from errors import ConfigError, InputValidationError, InvalidTransitionError
from game_models import (
    Candidate, DetailResult, EngineState, ExactMatch, Failure, GameMetadata, Item, ItemStatus,
    NotFound, RunMode, Suggestions,
)
from providers import IGDBProvider
from result_merger import merge_results


def _suggest(provider_id: str, *names: str) -> Suggestions:
    return Suggestions(
        candidates=tuple(Candidate(id=i + 1, display_name=n) for i, n in enumerate(names)),
        provider_id=provider_id,
    )


def _drive(engine: EnrichmentEngine, resolve=None) -> list[int]:
    """Step manually until the run leaves RUNNING for good; returns cursor trace."""
    cursors = [engine.cursor]
    while True:
        mode = engine.step()
        cursors.append(engine.cursor)
        if mode == RunMode.AWAITING_DISAMBIGUATION and resolve is not None:
            resolve(engine.broker())
            cursors.append(engine.cursor)
            continue
        if mode != RunMode.RUNNING:
            return cursors


class TestFillMissing:
    """Tests for fill_missing()."""

    def test_fills_empty_fields(self) -> None:
        item = Item(name="halo ce")
        result = fill_missing(
            item, make_cover(5), GameMetadata(name="Halo: Combat Evolved", year="2001", description="Ring world")
        )
        assert result.cover_url == "https://img.example/5.png"
        assert result.display_name_override == "Halo: Combat Evolved"
        assert result.release_year == "2001"
        assert result.description == "Ring world"

    def test_never_overwrites_populated_fields(self) -> None:
        item = Item(name="Halo", display_name_override="Halo CE", cover_url="mine.png",
                    release_year="2001", description="Mine")
        result = fill_missing(item, make_cover(5), GameMetadata(name="Halo 2", year="2004", description="Theirs"))
        assert result.cover_url == "mine.png"
        assert result.display_name_override == "Halo CE"
        assert result.release_year == "2001"
        assert result.description == "Mine"

    def test_same_name_does_not_set_override(self) -> None:
        result = fill_missing(Item(name="Portal"), None, GameMetadata(name="Portal"))
        assert result.display_name_override is None

    def test_returns_new_item(self) -> None:
        item = Item(name="Portal", extra={"Genre": "Puzzle"})
        result = fill_missing(item, make_cover(1), None)
        assert result is not item
        assert item.cover_url is None
        result.extra["Genre"] = "changed"
        assert item.extra["Genre"] == "Puzzle"


class TestRecordOutcome:
    """Tests for record_outcome() dedup-on-insert."""

    def test_inserts_and_advances(self) -> None:
        state = EngineState(items=[Item("A"), Item("B")])
        assert record_outcome(state, Item("A", status=ItemStatus.COMPLETED)) is True
        assert state.cursor == 1
        assert list(state.accumulated) == ["A"]

    def test_existing_entry_is_kept(self) -> None:
        state = EngineState(items=[Item("A"), Item("A")])
        record_outcome(state, Item("A", status=ItemStatus.NO_RESULTS))
        assert record_outcome(state, Item("A", status=ItemStatus.COMPLETED)) is False
        assert state.cursor == 2
        assert state.accumulated["A"].status == ItemStatus.NO_RESULTS


class TestControlTransitions:
    """Tests for start/pause/resume/stop/reset."""

    def test_start_runs_from_first_item(self) -> None:
        engine = make_engine(FakeGateway())
        engine.start([Item("A"), Item("B")])
        assert engine.run_mode == RunMode.RUNNING
        assert engine.cursor == 0

    def test_start_without_items_is_rejected(self) -> None:
        engine = make_engine(FakeGateway())
        with pytest.raises(InputValidationError):
            engine.start()

    def test_empty_name_is_rejected_before_run(self) -> None:
        engine = make_engine(FakeGateway())
        with pytest.raises(InputValidationError):
            engine.start([Item("A"), Item("  ")])
        assert engine.run_mode == RunMode.IDLE

    def test_start_needs_an_available_provider(self) -> None:
        engine = make_engine(FakeGateway(available=False))
        with pytest.raises(ConfigError):
            engine.start([Item("A")])
        assert engine.run_mode == RunMode.IDLE

    def test_start_while_running_is_invalid(self) -> None:
        engine = make_engine(FakeGateway())
        engine.start([Item("A")])
        with pytest.raises(InvalidTransitionError):
            engine.start()

    def test_pause_and_stop_from_idle_are_invalid(self) -> None:
        engine = make_engine(FakeGateway())
        with pytest.raises(InvalidTransitionError):
            engine.pause()
        with pytest.raises(InvalidTransitionError):
            engine.stop()

    def test_pause_then_resume(self) -> None:
        engine = make_engine(FakeGateway(results={"A": ExactMatch(cover=make_cover())}))
        engine.start([Item("A"), Item("B")])
        engine.pause()
        assert engine.run_mode == RunMode.PAUSED
        assert engine.step() == RunMode.PAUSED
        assert engine.cursor == 0

        engine.resume()
        assert engine.run_mode == RunMode.RUNNING
        assert engine.run() == RunMode.IDLE

    def test_resume_from_idle_starts_fresh(self) -> None:
        engine = make_engine(FakeGateway())
        engine.load([Item("A")])
        engine.resume()
        assert engine.run_mode == RunMode.RUNNING
        assert engine.cursor == 0

    def test_stop_is_terminal_until_reset(self) -> None:
        engine = make_engine(FakeGateway())
        engine.start([Item("A"), Item("B")])
        engine.step()
        engine.stop()
        assert engine.run_mode == RunMode.STOPPED
        assert engine.cursor == 1
        assert engine.step() == RunMode.STOPPED
        assert engine.cursor == 1
        with pytest.raises(InvalidTransitionError):
            engine.resume()
        with pytest.raises(InvalidTransitionError):
            engine.start()

        engine.reset()
        assert engine.run_mode == RunMode.IDLE
        engine.start()
        assert engine.run() == RunMode.IDLE

    def test_stop_from_awaiting_clears_pending(self) -> None:
        engine = make_engine(FakeGateway(results={"A": _suggest("fake", "A Remake")}))
        engine.start([Item("A")])
        assert engine.step() == RunMode.AWAITING_DISAMBIGUATION
        engine.stop()
        assert engine.run_mode == RunMode.STOPPED
        assert engine.pending is None
        assert engine.broker() is None

    def test_reset_clears_progress_keeps_items(self) -> None:
        engine = make_engine(FakeGateway(results={"A": ExactMatch(cover=make_cover())}))
        engine.start([Item("A"), Item("B")])
        engine.step()
        engine.pause()
        engine.reset()
        assert engine.run_mode == RunMode.IDLE
        assert engine.cursor == 0
        assert engine.state.accumulated == {}
        assert [i.name for i in engine.state.items] == ["A", "B"]

    def test_load_while_running_is_invalid(self) -> None:
        engine = make_engine(FakeGateway())
        engine.start([Item("A")])
        with pytest.raises(InvalidTransitionError):
            engine.load([Item("B")])


class TestStep:
    """Tests for the per-item transition."""

    def test_exact_match_with_cover_completes(self) -> None:
        gw = FakeGateway(results={"Halo": ExactMatch(cover=make_cover(3), metadata=GameMetadata(name="HALO"))})
        engine = make_engine(gw)
        engine.start([Item("Halo")])
        assert engine.step() == RunMode.RUNNING
        done = engine.state.accumulated["Halo"]
        assert done.status == ItemStatus.COMPLETED
        assert done.cover_url == "https://img.example/3.png"
        assert done.display_name_override == "HALO"
        assert engine.cursor == 1

    def test_query_is_normalized_and_flags_passed(self) -> None:
        gw = FakeGateway()
        engine = make_engine(gw)
        engine.start([Item("Halo™ GOTY Edition (PC)", cover_url="have.png", release_year="2001")])
        engine.step()
        query, known = gw.calls[0]
        assert query == "Halo"
        assert known.has_image is True
        assert known.has_year is True
        assert known.has_description is False

    def test_name_that_normalizes_to_nothing_uses_raw_name(self) -> None:
        gw = FakeGateway()
        engine = make_engine(gw)
        engine.start([Item(" ™ ")])
        engine.step()
        assert gw.calls[0][0] == "™"

    def test_exact_match_metadata_only_when_image_known(self) -> None:
        gw = FakeGateway(results={"Halo": ExactMatch(cover=None, metadata=GameMetadata(year="2001"))})
        engine = make_engine(gw)
        engine.start([Item("Halo", cover_url="have.png")])
        engine.step()
        done = engine.state.accumulated["Halo"]
        assert done.status == ItemStatus.COMPLETED
        assert done.cover_url == "have.png"
        assert done.release_year == "2001"

    def test_exact_match_without_anything_new_falls_back(self) -> None:
        a = FakeGateway("a", results={"Halo": ExactMatch(cover=None, metadata=GameMetadata(name="Halo"))})
        b = FakeGateway("b", results={"Halo": ExactMatch(cover=make_cover(9))})
        engine = make_engine(a, b)
        engine.start([Item("Halo")])
        engine.step()
        assert len(b.calls) == 1
        assert engine.state.accumulated["Halo"].cover_url == "https://img.example/9.png"

    def test_first_exact_match_wins(self) -> None:
        a = FakeGateway("a", results={"Halo": ExactMatch(cover=make_cover(1))})
        b = FakeGateway("b", results={"Halo": ExactMatch(cover=make_cover(2))})
        engine = make_engine(a, b)
        engine.start([Item("Halo")])
        engine.step()
        assert b.calls == []
        assert engine.state.accumulated["Halo"].cover_url == "https://img.example/1.png"

    def test_suggestions_block_progress(self) -> None:
        gw = FakeGateway(results={"Portal": _suggest("fake", "Portal 2", "Portal Stories")})
        engine = make_engine(gw)
        engine.start([Item("Portal"), Item("Doom")])
        assert engine.step() == RunMode.AWAITING_DISAMBIGUATION
        assert engine.cursor == 0
        assert engine.pending.item.name == "Portal"
        assert [c.display_name for c in engine.pending.candidates] == ["Portal 2", "Portal Stories"]
        assert engine.pending.provider_id == "fake"

        assert engine.step() == RunMode.AWAITING_DISAMBIGUATION
        assert len(gw.calls) == 1
        assert engine.cursor == 0

    def test_empty_suggestions_count_as_not_found(self) -> None:
        a = FakeGateway("a", results={"Doom": Suggestions(candidates=(), provider_id="a")})
        b = FakeGateway("b", results={"Doom": ExactMatch(cover=make_cover())})
        engine = make_engine(a, b)
        engine.start([Item("Doom")])
        assert engine.step() == RunMode.RUNNING
        assert engine.state.accumulated["Doom"].status == ItemStatus.COMPLETED

    def test_not_found_everywhere_is_no_results(self) -> None:
        engine = make_engine(FakeGateway("a"), FakeGateway("b"))
        engine.start([Item("Nothing")])
        engine.step()
        assert engine.state.accumulated["Nothing"].status == ItemStatus.NO_RESULTS
        assert engine.cursor == 1

    def test_unavailable_provider_is_skipped(self) -> None:
        a = FakeGateway("a", available=False, results={"Halo": ExactMatch(cover=make_cover(1))})
        b = FakeGateway("b", results={"Halo": ExactMatch(cover=make_cover(2))})
        engine = make_engine(a, b)
        engine.start([Item("Halo")])
        engine.step()
        assert a.calls == []
        assert engine.state.accumulated["Halo"].cover_url == "https://img.example/2.png"

    def test_gateway_exception_becomes_errored(self, recorder) -> None:
        gw = FakeGateway(results={"Bad": RuntimeError("kaput")})
        engine = make_engine(gw, callbacks=recorder.as_dict())
        engine.start([Item("Bad"), Item("Good")])
        assert engine.step() == RunMode.RUNNING
        assert engine.state.accumulated["Bad"].status == ItemStatus.ERRORED
        assert any("✗ Bad: error - kaput" in line for line in recorder.logs)

    def test_completed_item_is_skipped_on_revisit(self) -> None:
        gw = FakeGateway(results={"Halo": ExactMatch(cover=make_cover())})
        engine = make_engine(gw)
        engine.start([Item("Halo"), Item("Halo")])
        engine.step()
        engine.step()
        assert len(gw.calls) == 1
        assert engine.cursor == 2

    def test_non_completed_duplicate_is_looked_up_again(self) -> None:
        gw = FakeGateway(results={"Doom": [NotFound(), ExactMatch(cover=make_cover())]})
        engine = make_engine(gw)
        engine.start([Item("Doom"), Item("Doom")])
        engine.step()
        engine.step()
        assert len(gw.calls) == 2
        # Dedup-on-insert keeps the first outcome
        assert engine.state.accumulated["Doom"].status == ItemStatus.NO_RESULTS

    def test_log_glyphs(self, recorder) -> None:
        gw = FakeGateway(results={
            "Halo": ExactMatch(cover=make_cover()),
            "Portal": _suggest("fake", "Portal 2"),
        })
        engine = make_engine(gw, callbacks=recorder.as_dict())
        engine.start([Item("Halo"), Item("Doom"), Item("Portal")])
        engine.step()
        engine.step()
        engine.step()
        assert any(line.startswith("✓ Halo") for line in recorder.logs)
        assert any(line.startswith("✗ Doom: no results") for line in recorder.logs)
        assert any(line.startswith("? Portal") for line in recorder.logs)


class TestRun:
    """Tests for run()."""

    def test_runs_to_completion_and_emits_merged_result(self, recorder) -> None:
        sleeps: list[float] = []
        gw = FakeGateway(results={"A": ExactMatch(cover=make_cover())})
        engine = make_engine(gw, callbacks=recorder.as_dict(), step_delay=0.1, sleep=sleeps.append)
        engine.start([Item("A"), Item("B")])
        assert engine.run() == RunMode.IDLE
        assert sleeps == [0.1, 0.1]
        assert len(recorder.finished) == 1
        assert [(i.name, i.status) for i in recorder.finished[0]] == [
            ("A", ItemStatus.COMPLETED),
            ("B", ItemStatus.NO_RESULTS),
        ]
        assert recorder.progress[-1] == (2, 2)
        assert RunMode.IDLE in recorder.states

    def test_returns_awaiting_without_resolver(self) -> None:
        engine = make_engine(FakeGateway(results={"P": _suggest("fake", "P2")}))
        engine.start([Item("P"), Item("Q")])
        assert engine.run() == RunMode.AWAITING_DISAMBIGUATION
        broker = engine.broker()
        broker.skip()
        assert engine.run_mode == RunMode.RUNNING
        assert engine.run() == RunMode.IDLE

    def test_resolver_is_called_synchronously(self, recorder) -> None:
        seen = []

        def resolver(broker):
            seen.append(broker.item.name)
            broker.manual_url("https://covers.example/p.jpg")

        engine = make_engine(FakeGateway(results={"P": _suggest("fake", "P2")}),
                             callbacks=recorder.as_dict(resolver))
        engine.start([Item("P"), Item("Q")])
        assert engine.run() == RunMode.IDLE
        assert seen == ["P"]
        assert recorder.finished[0][0].cover_url == "https://covers.example/p.jpg"

    def test_resolver_that_does_nothing_leaves_run_waiting(self, recorder) -> None:
        engine = make_engine(FakeGateway(results={"P": _suggest("fake", "P2")}),
                             callbacks=recorder.as_dict(lambda broker: None))
        engine.start([Item("P")])
        assert engine.run() == RunMode.AWAITING_DISAMBIGUATION

    def test_failing_callback_does_not_change_decisions(self) -> None:
        def explode(*args):
            raise RuntimeError("ui gone")

        callbacks = {"item": explode, "progress": explode, "state": explode, "finished": explode}
        engine = make_engine(FakeGateway(results={"A": ExactMatch(cover=make_cover())}), callbacks=callbacks)
        engine.start([Item("A")])
        assert engine.run() == RunMode.IDLE
        assert engine.results()[0].status == ItemStatus.COMPLETED

    def test_snapshot_is_json_serializable(self) -> None:
        engine = make_engine(FakeGateway(results={"P": _suggest("fake", "P2")}))
        engine.start([Item("A"), Item("P")])
        engine.run()
        snap = json.loads(json.dumps(engine.snapshot()))
        assert snap["cursor"] == 1
        assert snap["run_mode"] == "awaiting-disambiguation"
        assert snap["pending"]["candidates"][0]["display_name"] == "P2"


class TestScenarios:
    """End-to-end runs over fake providers."""

    def test_duplicate_names_and_skipped_suggestion(self) -> None:
        a = FakeGateway("a", results={
            "Halo": ExactMatch(cover=make_cover(1), metadata=GameMetadata(name="Halo")),
            "Portal": NotFound(),
        })
        b = FakeGateway("b", results={"Portal": _suggest("b", "Portal 2")})
        original = [Item("Halo"), Item("Halo"), Item("Portal")]
        engine = make_engine(a, b)
        engine.start(original)

        assert engine.run() == RunMode.AWAITING_DISAMBIGUATION
        assert [q for q, _ in a.calls] == ["Halo", "Portal"]
        assert engine.pending.provider_id == "b"

        engine.broker().skip()
        assert engine.run() == RunMode.IDLE

        merged = merge_results(original, engine.state.accumulated)
        assert [(i.name, i.status) for i in merged] == [
            ("Halo", ItemStatus.COMPLETED),
            ("Portal", ItemStatus.NO_RESULTS),
        ]
        assert merged[0].cover_url == "https://img.example/1.png"

    def test_pause_during_lookup_applies_after_outcome(self) -> None:
        holder: dict[str, EnrichmentEngine] = {}

        def on_lookup(query: str) -> None:
            if query == "G2":
                holder["engine"].pause()
                # Still RUNNING while the lookup is outstanding
                assert holder["engine"].run_mode == RunMode.RUNNING

        gw = FakeGateway(results={f"G{i}": ExactMatch(cover=make_cover(i)) for i in range(1, 6)},
                         on_lookup=on_lookup)
        engine = make_engine(gw)
        holder["engine"] = engine
        engine.start([Item(f"G{i}") for i in range(1, 6)])

        assert engine.run() == RunMode.PAUSED
        assert engine.cursor == 2
        assert list(engine.state.accumulated) == ["G1", "G2"]

        engine.resume()
        assert engine.run() == RunMode.IDLE
        assert [q for q, _ in gw.calls] == ["G1", "G2", "G3", "G4", "G5"]

    def test_resume_cancels_pending_pause_request(self) -> None:
        holder: dict[str, EnrichmentEngine] = {}

        def on_lookup(query: str) -> None:
            if query == "G1":
                holder["engine"].pause()
                holder["engine"].resume()

        engine = make_engine(FakeGateway(on_lookup=on_lookup))
        holder["engine"] = engine
        engine.start([Item("G1"), Item("G2")])
        assert engine.run() == RunMode.IDLE

    def test_pause_while_awaiting_applies_after_resolution(self) -> None:
        engine = make_engine(FakeGateway(results={"P": _suggest("fake", "P2")}))
        engine.start([Item("P"), Item("Q")])
        engine.run()
        engine.pause()
        assert engine.run_mode == RunMode.AWAITING_DISAMBIGUATION
        engine.broker().skip()
        assert engine.run_mode == RunMode.PAUSED
        assert engine.cursor == 1

    def test_stop_during_lookup_discards_result(self) -> None:
        holder: dict[str, EnrichmentEngine] = {}

        def on_lookup(query: str) -> None:
            if query == "G2":
                holder["engine"].stop()

        gw = FakeGateway(results={f"G{i}": ExactMatch(cover=make_cover(i)) for i in range(1, 4)},
                         on_lookup=on_lookup)
        engine = make_engine(gw)
        holder["engine"] = engine
        engine.start([Item("G1"), Item("G2"), Item("G3")])

        assert engine.run() == RunMode.STOPPED
        assert engine.cursor == 1
        assert list(engine.state.accumulated) == ["G1"]
        assert [(i.name, i.status) for i in engine.results()] == [
            ("G1", ItemStatus.COMPLETED),
            ("G2", ItemStatus.PENDING),
            ("G3", ItemStatus.PENDING),
        ]

    def test_reset_during_lookup_discards_result(self) -> None:
        holder: dict[str, EnrichmentEngine] = {}

        def on_lookup(query: str) -> None:
            if query == "G1":
                holder["engine"].reset()

        engine = make_engine(FakeGateway(results={"G1": ExactMatch(cover=make_cover())}, on_lookup=on_lookup))
        holder["engine"] = engine
        engine.start([Item("G1"), Item("G2")])
        assert engine.run() == RunMode.IDLE
        assert engine.cursor == 0
        assert engine.state.accumulated == {}

    def test_failure_never_falls_back(self) -> None:
        a = FakeGateway("a", results={"X": Failure("HTTP 500")})
        b = FakeGateway("b", results={"X": ExactMatch(cover=make_cover())})
        engine = make_engine(a, b)
        engine.start([Item("X"), Item("Y")])
        assert engine.run() == RunMode.IDLE
        assert [q for q, _ in b.calls] == ["Y"]
        assert engine.state.accumulated["X"].status == ItemStatus.ERRORED
        assert engine.cursor == 2

    def test_igdb_exact_match_without_cover_asks_the_user(self) -> None:
        games = [
            {"id": 71, "name": "Portal", "first_release_date": 1191888000, "summary": "Test chambers."},
            {"id": 72, "name": "Portal 2",
             "cover": {"id": 9, "url": "//images.igdb.com/igdb/image/upload/t_thumb/co2.jpg"}},
        ]

        def fake_post(url, params=None, headers=None, data=None, timeout=None):
            r = MagicMock()
            r.json.return_value = {"access_token": "tok", "expires_in": 3600} if "oauth2" in url else games
            return r

        engine = make_engine(IGDBProvider(client_id="id", client_secret="secret"))
        engine.start([Item("Portal")])
        with patch("providers.requests.post", side_effect=fake_post):
            assert engine.run() == RunMode.AWAITING_DISAMBIGUATION

        candidates = engine.pending.candidates
        assert [c.display_name for c in candidates] == ["Portal", "Portal 2"]
        assert candidates[0].year == "2007"

        resolved = engine.broker().select_cover(
            None, GameMetadata(year=candidates[0].year, description=candidates[0].description))
        assert resolved.status == ItemStatus.COMPLETED
        assert resolved.release_year == "2007"
        assert resolved.description == "Test chambers."

    def test_errored_item_is_retried_only_by_a_new_run(self) -> None:
        gw = FakeGateway(results={"X": [Failure("timeout"), ExactMatch(cover=make_cover())]})
        engine = make_engine(gw)
        engine.start([Item("X")])
        engine.run()
        assert engine.results()[0].status == ItemStatus.ERRORED

        engine.start()
        engine.run()
        assert engine.results()[0].status == ItemStatus.COMPLETED


class TestProperties:
    """Invariants that hold for any run."""

    GATEWAY_RESULTS = {
        "Halo": ExactMatch(cover=make_cover(1), metadata=GameMetadata(year="2010")),
        "Portal": _suggest("fake", "Portal 2", "Portal Stories"),
        "Doom": Failure("boom"),
        "Myst": ExactMatch(cover=None, metadata=GameMetadata(year="2010", description="Island")),
    }

    INPUTS = [
        ["Halo", "Portal", "Doom", "Myst", "Unknown"],
        ["Halo", "Halo", "Portal", "Portal", "Doom", "Doom"],
        ["Portal", "Myst", "Halo", "Portal", "Halo"],
    ]

    def _items(self, names: list[str]) -> list[Item]:
        # Every item carries a year that must survive enrichment
        return [Item(n, release_year="1999", cover_url="mine.png" if n == "Myst" else None) for n in names]

    @pytest.mark.parametrize("names", INPUTS)
    @pytest.mark.parametrize("resolution", ["skip", "manual", "select"])
    def test_invariants(self, names: list[str], resolution: str) -> None:
        details = {1: _detail(), 2: _detail()}
        engine = make_engine(FakeGateway(results=dict(self.GATEWAY_RESULTS), details=details))
        original = self._items(names)
        engine.start(original)

        def resolve(broker) -> None:
            if resolution == "skip":
                broker.skip()
            elif resolution == "manual":
                broker.manual_url("https://covers.example/manual.png")
            else:
                detail = broker.load_candidate(broker.candidates[0].id)
                broker.select_cover(detail.covers[0], detail.metadata)

        cursors = _drive(engine, resolve)
        assert engine.run_mode == RunMode.IDLE

        # Monotonic cursor
        assert cursors == sorted(cursors)
        # Dedup invariant
        accumulated = engine.state.accumulated
        assert all(key == item.name for key, item in accumulated.items())
        # Fill-only-if-empty
        assert all(item.release_year == "1999" for item in accumulated.values())
        # Completion coverage
        merged = merge_results(original, accumulated)
        assert {i.name for i in merged} == set(names)
        assert len(merged) == len(set(names))


def _detail() -> DetailResult:
    return DetailResult(covers=(make_cover(7),), metadata=GameMetadata(name="Portal 2", year="2011"))
