"""Domain models for shoot sessions and their aggregate counters."""

from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import StrEnum
from uuid import UUID

from photo_live.domain.photos import PhotoStatus


class SessionStatus(StrEnum):
    """Lifecycle status of a session."""

    ACTIVE = "active"
    PAUSED = "paused"
    ENDED = "ended"
    ARCHIVED = "archived"


@dataclass(frozen=True)
class WatermarkConfig:
    """Per-session watermark settings."""

    enabled: bool = False
    text: str | None = None
    opacity: float = 0.3

    @property
    def active(self) -> bool:
        return self.enabled and bool(self.text and self.text.strip())


@dataclass(frozen=True)
class CounterDelta:
    """Signed adjustment to a session's photo counters."""

    total: int = 0
    by_status: dict[PhotoStatus, int] = field(default_factory=dict)

    @classmethod
    def for_create(cls, status: PhotoStatus) -> "CounterDelta":
        return cls(total=1, by_status={status: 1})

    @classmethod
    def for_transition(
        cls, current: PhotoStatus, target: PhotoStatus
    ) -> "CounterDelta":
        if current == target:
            return cls()
        return cls(total=0, by_status={current: -1, target: 1})

    @classmethod
    def for_delete(cls, status: PhotoStatus) -> "CounterDelta":
        return cls(total=-1, by_status={status: -1})

    @property
    def is_empty(self) -> bool:
        return self.total == 0 and not any(self.by_status.values())

    def as_payload(self) -> dict[str, int]:
        """Serialize the delta with one key per counter."""
        payload = {"total": self.total}
        for status in PhotoStatus:
            payload[status.value] = self.by_status.get(status, 0)
        return payload


@dataclass(frozen=True)
class SessionCounters:
    """Aggregate counters cached on a session row."""

    total_photos: int = 0
    pending_photos: int = 0
    published_photos: int = 0
    rejected_photos: int = 0
    archived_photos: int = 0
    total_views: int = 0
    unique_viewers: int = 0

    def count_for(self, status: PhotoStatus) -> int:
        return getattr(self, f"{status.value}_photos")

    @property
    def is_consistent(self) -> bool:
        """Whether the status counters partition the total."""
        counts = [self.count_for(status) for status in PhotoStatus]
        return sum(counts) == self.total_photos and min(counts) >= 0

    def apply(self, delta: CounterDelta) -> "SessionCounters":
        """Return counters with ``delta`` applied."""
        changes = {"total_photos": self.total_photos + delta.total}
        for status, amount in delta.by_status.items():
            key = f"{status.value}_photos"
            changes[key] = getattr(self, key) + amount
        return replace(self, **changes)

    @classmethod
    def from_statuses(
        cls,
        statuses: Iterable[PhotoStatus],
        total_views: int = 0,
        unique_viewers: int = 0,
    ) -> "SessionCounters":
        """Recompute photo counters from the statuses of actual photo rows."""
        tally = Counter(statuses)
        return cls(
            total_photos=sum(tally.values()),
            pending_photos=tally[PhotoStatus.PENDING],
            published_photos=tally[PhotoStatus.PUBLISHED],
            rejected_photos=tally[PhotoStatus.REJECTED],
            archived_photos=tally[PhotoStatus.ARCHIVED],
            total_views=total_views,
            unique_viewers=unique_viewers,
        )


@dataclass(frozen=True)
class SessionRecord:
    """Represents a persisted shoot session."""

    id: UUID
    owner_id: UUID | None
    title: str
    is_public: bool
    access_code: str | None
    status: SessionStatus
    review_mode: bool = False
    watermark: WatermarkConfig = field(default_factory=WatermarkConfig)
    counters: SessionCounters = field(default_factory=SessionCounters)
    created_at: datetime | None = None
    ended_at: datetime | None = None
