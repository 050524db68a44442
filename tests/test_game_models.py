"""Tests for the pipeline data types."""

from __future__ import annotations

import json

from game_models import (
    Candidate, EngineState, GameMetadata, Item, ItemStatus, KnownFields,
    PendingDisambiguation, RunMode,
)


class TestItem:
    """Tests for Item."""

    def test_with_status_copies(self) -> None:
        item = Item("Halo", extra={"Genre": "Shooter"})
        done = item.with_status(ItemStatus.COMPLETED)
        assert done.status == ItemStatus.COMPLETED
        assert item.status == ItemStatus.PENDING
        done.extra["Genre"] = "x"
        assert item.extra["Genre"] == "Shooter"

    def test_to_dict_uses_plain_values(self) -> None:
        data = Item("Halo", status=ItemStatus.NO_RESULTS).to_dict()
        assert data["status"] == "no-results"
        assert data["name"] == "Halo"


class TestKnownFields:
    """Tests for KnownFields.from_item."""

    def test_flags(self) -> None:
        known = KnownFields.from_item(Item("Halo", cover_url="x.png", description=""))
        assert known == KnownFields(has_image=True, has_year=False, has_description=False)


class TestGameMetadata:
    """Tests for GameMetadata."""

    def test_is_empty(self) -> None:
        assert GameMetadata().is_empty()
        assert not GameMetadata(year="2001").is_empty()


class TestEngineState:
    """Tests for EngineState."""

    def test_current_item(self) -> None:
        state = EngineState(items=[Item("A"), Item("B")], cursor=1)
        assert state.current_item.name == "B"
        state.cursor = 2
        assert state.current_item is None

    def test_snapshot_is_json_serializable(self) -> None:
        state = EngineState(
            items=[Item("A"), Item("B")],
            cursor=1,
            accumulated={"A": Item("A", status=ItemStatus.COMPLETED)},
            run_mode=RunMode.AWAITING_DISAMBIGUATION,
            pending=PendingDisambiguation(
                item=Item("B"), candidates=(Candidate(id=3, display_name="B 2", year="2004"),), provider_id="igdb"
            ),
        )
        snap = json.loads(json.dumps(state.snapshot()))
        assert snap["run_mode"] == "awaiting-disambiguation"
        assert snap["total"] == 2
        assert snap["accumulated"][0]["status"] == "completed"
        assert snap["pending"]["candidates"] == [
            {"id": 3, "display_name": "B 2", "year": "2004", "description": None, "logo_url": None}
        ]
