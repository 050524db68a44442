"""
Data types for the cover enrichment pipeline.

Items are treated as values: every enrichment step builds a new Item with
dataclasses.replace instead of mutating the one it was given.
"""
from dataclasses import asdict, dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union


class ItemStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    NO_RESULTS = "no-results"
    ERRORED = "error"


class RunMode(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    AWAITING_DISAMBIGUATION = "awaiting-disambiguation"
    STOPPED = "stopped"


@dataclass
class Item:
    """One game to enrich. `name` is its identity."""
    name: str
    display_name_override: Optional[str] = None
    cover_url: Optional[str] = None
    release_year: Optional[str] = None
    description: Optional[str] = None
    status: ItemStatus = ItemStatus.PENDING
    # Input columns the pipeline does not interpret (genre, size, ...)
    extra: Dict[str, str] = field(default_factory=dict)

    def with_status(self, status: ItemStatus) -> "Item":
        return replace(self, status=status, extra=dict(self.extra))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "display_name_override": self.display_name_override,
            "cover_url": self.cover_url,
            "release_year": self.release_year,
            "description": self.description,
            "status": self.status.value,
            "extra": dict(self.extra),
        }


@dataclass(frozen=True)
class Candidate:
    """A provider near-match that needs a human to confirm it."""
    id: int
    display_name: str
    year: Optional[str] = None
    description: Optional[str] = None
    logo_url: Optional[str] = None


@dataclass(frozen=True)
class Cover:
    id: int
    full_url: str
    thumb_url: str
    width: int = 0
    height: int = 0
    score: float = 0
    tags: Tuple[str, ...] = ()
    style: str = ""

    @property
    def dimensions(self) -> str:
        return f"{self.width}x{self.height}"


@dataclass(frozen=True)
class GameMetadata:
    name: Optional[str] = None
    year: Optional[str] = None
    description: Optional[str] = None

    def is_empty(self) -> bool:
        return not (self.name or self.year or self.description)


@dataclass(frozen=True)
class KnownFields:
    """Which fields an item already carries; providers must not re-fetch those."""
    has_image: bool = False
    has_year: bool = False
    has_description: bool = False

    @classmethod
    def from_item(cls, item: Item) -> "KnownFields":
        return cls(
            has_image=bool(item.cover_url),
            has_year=bool(item.release_year),
            has_description=bool(item.description),
        )


# ==========================
# Lookup results
# ==========================
@dataclass(frozen=True)
class ExactMatch:
    cover: Optional[Cover] = None
    metadata: Optional[GameMetadata] = None


@dataclass(frozen=True)
class Suggestions:
    candidates: Tuple[Candidate, ...]
    provider_id: str


@dataclass(frozen=True)
class NotFound:
    pass


@dataclass(frozen=True)
class Failure:
    reason: str


LookupResult = Union[ExactMatch, Suggestions, NotFound, Failure]


@dataclass(frozen=True)
class DetailResult:
    """Second-stage fetch for a chosen candidate."""
    covers: Tuple[Cover, ...] = ()
    metadata: Optional[GameMetadata] = None


# ==========================
# Engine state
# ==========================
@dataclass
class PendingDisambiguation:
    item: Item
    candidates: Tuple[Candidate, ...]
    provider_id: str


@dataclass
class EngineState:
    """Everything the engine knows about a run. Single instance per input list."""
    items: List[Item] = field(default_factory=list)
    cursor: int = 0
    # Insertion order is processing order; keys are unique (dedup invariant)
    accumulated: Dict[str, Item] = field(default_factory=dict)
    run_mode: RunMode = RunMode.IDLE
    pending: Optional[PendingDisambiguation] = None

    @property
    def current_item(self) -> Optional[Item]:
        if 0 <= self.cursor < len(self.items):
            return self.items[self.cursor]
        return None

    def snapshot(self) -> Dict[str, Any]:
        """JSON-serializable copy of the state."""
        pending = None
        if self.pending is not None:
            pending = {
                "item": self.pending.item.to_dict(),
                "candidates": [asdict(c) for c in self.pending.candidates],
                "provider_id": self.pending.provider_id,
            }
        return {
            "cursor": self.cursor,
            "total": len(self.items),
            "run_mode": self.run_mode.value,
            "accumulated": [item.to_dict() for item in self.accumulated.values()],
            "pending": pending,
        }
