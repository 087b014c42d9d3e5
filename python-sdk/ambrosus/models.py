"""Immutable assets and events, and the builders that produce them."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, TypeVar

from .errors import ValidationError
from .sections import EventData
from .type_index import TypeIndex

S = TypeVar("S", bound=EventData)


@dataclass(frozen=True)
class MetaData:
    bundle_id: str | None = None
    entity_upload_timestamp: int | None = None

    def to_wire(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        if self.bundle_id is not None:
            out["bundleId"] = self.bundle_id
        if self.entity_upload_timestamp is not None:
            out["entityUploadTimestamp"] = self.entity_upload_timestamp
        return out

    @classmethod
    def from_wire(cls, obj: Mapping[str, Any] | None) -> "MetaData | None":
        if not isinstance(obj, Mapping):
            return None
        return cls(obj.get("bundleId"), obj.get("entityUploadTimestamp"))


def _check_non_negative(name: str, value: int | None) -> None:
    if value is None:
        return
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValidationError(f"{name} must be a non-negative integer (got {value!r})")


@dataclass(frozen=True, eq=False)
class AmbrosusEntity:
    created_by: str | None = None
    timestamp: int | None = None
    metadata: MetaData | None = None


@dataclass(frozen=True, eq=False)
class Event(AmbrosusEntity):
    event_id: str | None = None
    asset_id: str | None = None
    access_level: int = 0
    data: tuple[EventData, ...] = ()
    data_hash: str | None = None
    signature: str | None = None
    _index: TypeIndex[EventData] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if not self.asset_id:
            raise ValidationError("Missing asset ID for event.")
        _check_non_negative("access_level", self.access_level)

        sections = tuple(section.bind(self) for section in self.data)
        object.__setattr__(self, "data", sections)
        object.__setattr__(self, "_index", TypeIndex(sections))

    def has_data_of_type(self, cls: type[EventData]) -> bool:
        return self._index.has(cls)

    def data_of_type(self, cls: type[S]) -> list[S]:
        return self._index.of_type(cls)

    def section_at(self, cls: type[S], index: int) -> S:
        return self._index.at(cls, index)

    def first_of(self, cls: type[S]) -> S:
        return self._index.first(cls)

    def last_of(self, cls: type[S]) -> S:
        return self._index.last(cls)


def _newest_first(events: Iterable[Event]) -> tuple[Event, ...]:
    # sorted() stays stable with reverse=True, so ties keep insertion order.
    return tuple(sorted(events, key=lambda e: e.timestamp if e.timestamp is not None else 0, reverse=True))


@dataclass(frozen=True, eq=False)
class Asset(AmbrosusEntity):
    asset_id: str | None = None
    sequence_number: int | None = None
    signature: str | None = None
    events: tuple[Event, ...] = ()
    _index: TypeIndex[EventData] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        _check_non_negative("sequence_number", self.sequence_number)

        events = _newest_first(self.events)
        object.__setattr__(self, "events", events)
        object.__setattr__(self, "_index", TypeIndex(section for event in events for section in event.data))

    def has_section_of_type(self, cls: type[EventData]) -> bool:
        return self._index.has(cls)

    def sections_of_type(self, cls: type[S]) -> list[S]:
        """Sections of exactly ``cls`` across all events, newest event first."""
        return self._index.of_type(cls)

    def section_at(self, cls: type[S], index: int) -> S:
        return self._index.at(cls, index)

    def first_of(self, cls: type[S]) -> S:
        return self._index.first(cls)

    def last_of(self, cls: type[S]) -> S:
        return self._index.last(cls)

    def events_containing_type(self, cls: type[EventData]) -> set[Event]:
        owners = (section.parent_event for section in self._index.of_type(cls))
        return {event for event in owners if event is not None}


class _EntityBuilder:
    def __init__(self) -> None:
        self.created_by: str | None = None
        self.timestamp: int | None = None
        self.metadata: MetaData | None = None

    def set_created_by(self, created_by: str | None):
        self.created_by = created_by
        return self

    def set_timestamp(self, timestamp: int | None):
        self.timestamp = timestamp
        return self

    def set_metadata(self, metadata: MetaData | None):
        self.metadata = metadata
        return self


class AssetBuilder(_EntityBuilder):
    def __init__(self) -> None:
        super().__init__()
        self.asset_id: str | None = None
        self.sequence_number: int | None = None
        self.signature: str | None = None
        self.events: list[Event] = []

    @classmethod
    def from_existing(cls, asset: Asset) -> "AssetBuilder":
        builder = cls()
        builder.created_by = asset.created_by
        builder.timestamp = asset.timestamp
        builder.metadata = asset.metadata
        builder.asset_id = asset.asset_id
        builder.sequence_number = asset.sequence_number
        builder.signature = asset.signature
        builder.events = list(asset.events)
        return builder

    def set_asset_id(self, asset_id: str | None) -> "AssetBuilder":
        self.asset_id = asset_id
        return self

    def set_sequence_number(self, sequence_number: int | None) -> "AssetBuilder":
        self.sequence_number = sequence_number
        return self

    def set_signature(self, signature: str | None) -> "AssetBuilder":
        self.signature = signature
        return self

    def add_event(self, event: Event) -> "AssetBuilder":
        self.events.append(event)
        return self

    def add_events(self, events: Iterable[Event]) -> "AssetBuilder":
        self.events.extend(events)
        return self

    def build(self) -> Asset:
        return Asset(
            created_by=self.created_by,
            timestamp=self.timestamp,
            metadata=self.metadata,
            asset_id=self.asset_id,
            sequence_number=self.sequence_number,
            signature=self.signature,
            events=tuple(self.events),
        )


class EventBuilder(_EntityBuilder):
    def __init__(self) -> None:
        super().__init__()
        self.event_id: str | None = None
        self.asset_id: str | None = None
        self.access_level: int | None = None
        self.data: list[EventData] = []
        self.data_hash: str | None = None
        self.signature: str | None = None

    @classmethod
    def from_existing(cls, event: Event) -> "EventBuilder":
        builder = cls()
        builder.created_by = event.created_by
        builder.timestamp = event.timestamp
        builder.metadata = event.metadata
        builder.event_id = event.event_id
        builder.asset_id = event.asset_id
        builder.access_level = event.access_level
        builder.data = list(event.data)
        builder.data_hash = event.data_hash
        builder.signature = event.signature
        return builder

    def set_event_id(self, event_id: str | None) -> "EventBuilder":
        self.event_id = event_id
        return self

    def set_asset_id(self, asset_id: str | None) -> "EventBuilder":
        self.asset_id = asset_id
        return self

    def set_access_level(self, access_level: int | None) -> "EventBuilder":
        self.access_level = access_level
        return self

    def set_data_hash(self, data_hash: str | None) -> "EventBuilder":
        self.data_hash = data_hash
        return self

    def set_signature(self, signature: str | None) -> "EventBuilder":
        self.signature = signature
        return self

    def add_data(self, section: EventData) -> "EventBuilder":
        self.data.append(section)
        return self

    def add_all_data(self, sections: Iterable[EventData]) -> "EventBuilder":
        self.data.extend(sections)
        return self

    def build(self) -> Event:
        if not self.asset_id:
            raise ValidationError("Missing asset ID in event builder.")
        return Event(
            created_by=self.created_by,
            timestamp=self.timestamp,
            metadata=self.metadata,
            event_id=self.event_id,
            asset_id=self.asset_id,
            access_level=self.access_level if self.access_level is not None else 0,
            data=tuple(self.data),
            data_hash=self.data_hash,
            signature=self.signature,
        )
