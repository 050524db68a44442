"""Tests for DisambiguationBroker."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from conftest import FakeGateway, make_cover, make_engine
from disambiguation import MANUAL_COVER_ID, manual_cover
from errors import InvalidTransitionError, ProviderError
from game_models import Candidate, DetailResult, GameMetadata, Item, ItemStatus, RunMode, Suggestions


def _awaiting_engine(item: Item, details=None, translator=None, callbacks=None):
    suggestions = Suggestions(
        candidates=(Candidate(id=1, display_name="Portal 2"), Candidate(id=2, display_name="Portal Stories")),
        provider_id="fake",
    )
    gw = FakeGateway(results={"Portal": suggestions}, details=details or {})
    engine = make_engine(gw, translator=translator, callbacks=callbacks)
    engine.start([item, Item("Next")])
    assert engine.run() == RunMode.AWAITING_DISAMBIGUATION
    return engine, gw


class TestManualCover:
    """Tests for manual_cover()."""

    def test_builds_sentinel_cover(self) -> None:
        cover = manual_cover("  https://covers.example/x.jpg ")
        assert cover.id == MANUAL_COVER_ID
        assert cover.full_url == "https://covers.example/x.jpg"
        assert cover.thumb_url == cover.full_url
        assert cover.style == "manual"

    def test_empty_url_rejected(self) -> None:
        with pytest.raises(ValueError):
            manual_cover("   ")


class TestBroker:
    """Tests for the three resolutions and candidate browsing."""

    def test_exposes_pending_data(self) -> None:
        engine, gw = _awaiting_engine(Item("Portal"))
        broker = engine.broker()
        assert broker.item.name == "Portal"
        assert [c.id for c in broker.candidates] == [1, 2]
        assert broker.provider is gw
        assert broker.search_url() == "https://fake.example/search?q=Portal"
        assert broker.is_resolved is False

    def test_select_cover_merges_metadata_into_empty_fields(self) -> None:
        detail = DetailResult(
            covers=(make_cover(11), make_cover(12)),
            metadata=GameMetadata(name="Portal 2", year="2011", description="Test chambers"),
        )
        engine, gw = _awaiting_engine(Item("Portal", release_year="2007"), details={1: detail})
        broker = engine.broker()

        loaded = broker.load_candidate(1)
        assert gw.detail_calls == [1]
        resolved = broker.select_cover(loaded.covers[1], loaded.metadata)

        assert resolved.status == ItemStatus.COMPLETED
        assert resolved.cover_url == "https://img.example/12.png"
        assert resolved.release_year == "2007"
        assert resolved.description == "Test chambers"
        assert resolved.display_name_override == "Portal 2"
        assert engine.run_mode == RunMode.RUNNING
        assert engine.cursor == 1
        assert engine.state.accumulated["Portal"] == resolved

    def test_select_metadata_only(self) -> None:
        engine, _ = _awaiting_engine(Item("Portal", cover_url="mine.png"))
        resolved = engine.broker().select_cover(None, GameMetadata(year="2011"))
        assert resolved.cover_url == "mine.png"
        assert resolved.release_year == "2011"

    def test_select_nothing_is_rejected(self) -> None:
        engine, _ = _awaiting_engine(Item("Portal"))
        broker = engine.broker()
        with pytest.raises(ValueError):
            broker.select_cover(None, None)
        assert engine.run_mode == RunMode.AWAITING_DISAMBIGUATION
        assert broker.is_resolved is False

    def test_manual_url_skips_metadata(self) -> None:
        engine, _ = _awaiting_engine(Item("Portal"))
        resolved = engine.broker().manual_url("https://covers.example/p.jpg")
        assert resolved.status == ItemStatus.COMPLETED
        assert resolved.cover_url == "https://covers.example/p.jpg"
        assert resolved.release_year is None
        assert resolved.display_name_override is None

    def test_manual_url_never_overwrites_existing_cover(self) -> None:
        engine, _ = _awaiting_engine(Item("Portal", cover_url="mine.png"))
        resolved = engine.broker().manual_url("https://covers.example/p.jpg")
        assert resolved.cover_url == "mine.png"

    def test_skip_records_no_results(self) -> None:
        engine, _ = _awaiting_engine(Item("Portal"))
        resolved = engine.broker().skip()
        assert resolved.status == ItemStatus.NO_RESULTS
        assert engine.state.accumulated["Portal"].status == ItemStatus.NO_RESULTS
        assert engine.cursor == 1

    def test_second_resolution_is_rejected(self) -> None:
        engine, _ = _awaiting_engine(Item("Portal"))
        broker = engine.broker()
        broker.skip()
        with pytest.raises(InvalidTransitionError):
            broker.manual_url("https://covers.example/p.jpg")
        assert engine.state.accumulated["Portal"].status == ItemStatus.NO_RESULTS

    def test_stale_broker_after_reset_is_rejected(self) -> None:
        engine, _ = _awaiting_engine(Item("Portal"))
        stale = engine.broker()
        engine.reset()
        engine.start()
        engine.run()
        assert engine.run_mode == RunMode.AWAITING_DISAMBIGUATION
        with pytest.raises(InvalidTransitionError):
            stale.skip()
        assert engine.run_mode == RunMode.AWAITING_DISAMBIGUATION

    def test_resolution_after_stop_is_rejected(self) -> None:
        engine, _ = _awaiting_engine(Item("Portal"))
        broker = engine.broker()
        engine.stop()
        with pytest.raises(InvalidTransitionError):
            broker.skip()

    def test_stop_run(self) -> None:
        engine, _ = _awaiting_engine(Item("Portal"))
        broker = engine.broker()
        broker.stop_run()
        assert engine.run_mode == RunMode.STOPPED
        assert broker.is_resolved is True
        assert "Portal" not in engine.state.accumulated

    def test_detail_failure_keeps_waiting(self) -> None:
        engine, _ = _awaiting_engine(Item("Portal"))
        broker = engine.broker()
        with pytest.raises(ProviderError):
            broker.load_candidate(99)
        assert engine.run_mode == RunMode.AWAITING_DISAMBIGUATION

    def test_description_is_translated(self) -> None:
        translator = MagicMock()
        translator.translate.return_value = "Cámaras de prueba"
        detail = DetailResult(covers=(), metadata=GameMetadata(description="Test chambers"))
        engine, _ = _awaiting_engine(Item("Portal"), details={1: detail}, translator=translator)

        loaded = engine.broker().load_candidate(1)
        translator.translate.assert_called_once_with("Test chambers")
        assert loaded.metadata.description == "Cámaras de prueba"

    def test_resolution_is_logged(self, recorder) -> None:
        engine, _ = _awaiting_engine(Item("Portal"), callbacks=recorder.as_dict())
        engine.broker().skip()
        assert "✗ Portal: skipped" in recorder.logs
