"""Typed event-data sections and the registry that maps type tags to them."""

from __future__ import annotations

import copy
import dataclasses
import logging
import weakref
from dataclasses import dataclass, field
from typing import Any, ClassVar, Iterable, Mapping

from .canonical import canonical_json, canonicalize
from .errors import CanonicalizationError

LOGGER = logging.getLogger(__name__)

TYPE_KEY = "type"


class EventData:
    """Base class for event-data sections.

    Subclasses are frozen dataclasses. The default codec writes every
    non-``None`` dataclass field under its own name (or under
    ``metadata["wire_key"]``) next to the ``type`` tag, and reads them back,
    failing on missing fields that have no default. A decoded section keeps
    the object it came from and writes that back unchanged.
    """

    type_tag: ClassVar[str | None] = None
    _parent_ref: weakref.ref | None = None
    _source: dict[str, Any] | None = None

    @property
    def type(self) -> str | None:
        return self.type_tag

    @property
    def parent_event(self):
        """The event this section belongs to, or ``None`` if unbound or collected."""
        return self._parent_ref() if self._parent_ref is not None else None

    def bind(self, event) -> "EventData":
        # Parent is assigned once; a section already owned elsewhere is cloned.
        section = self if self._parent_ref is None else copy.copy(self)
        object.__setattr__(section, "_parent_ref", weakref.ref(event))
        return section

    def to_wire(self) -> dict[str, Any]:
        if self._source is not None:
            return copy.deepcopy(self._source)
        return self._encode()

    @classmethod
    def from_wire(cls, obj: Mapping[str, Any]) -> "EventData":
        section = cls._decode(obj)
        object.__setattr__(section, "_source", copy.deepcopy(dict(obj)))
        return section

    def _encode(self) -> dict[str, Any]:
        out: dict[str, Any] = {TYPE_KEY: self.type}
        for f in dataclasses.fields(self):
            value = getattr(self, f.name)
            if value is not None:
                out[f.metadata.get("wire_key", f.name)] = value
        return out

    @classmethod
    def _decode(cls, obj: Mapping[str, Any]) -> "EventData":
        kwargs: dict[str, Any] = {}
        for f in dataclasses.fields(cls):
            if not f.init:
                continue
            key = f.metadata.get("wire_key", f.name)
            value = obj.get(key)
            if value is None:
                if f.default is dataclasses.MISSING and f.default_factory is dataclasses.MISSING:
                    raise CanonicalizationError(f"{cls.__name__}: missing required field {key!r}")
                continue
            kwargs[f.name] = value
        return cls(**kwargs)


def _coordinate(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise CanonicalizationError(f"Location: bad coordinate {value!r}")
    return value


@dataclass(frozen=True)
class Location(EventData):
    type_tag: ClassVar[str] = "ambrosus.asset.location"

    latitude: float
    longitude: float
    name: str
    city: str
    country: str

    def _encode(self) -> dict[str, Any]:
        return {
            TYPE_KEY: self.type_tag,
            "name": self.name,
            "city": self.city,
            "country": self.country,
            "location": {
                "geometry": {
                    TYPE_KEY: "Point",
                    "coordinates": [float(self.longitude), float(self.latitude)],
                }
            },
        }

    @classmethod
    def _decode(cls, obj: Mapping[str, Any]) -> "Location":
        location = obj.get("location")
        geometry = location.get("geometry") if isinstance(location, dict) else None
        coordinates = geometry.get("coordinates") if isinstance(geometry, dict) else None
        if not isinstance(coordinates, list) or len(coordinates) != 2:
            raise CanonicalizationError("Location: coordinates must be a [longitude, latitude] pair")

        for key in ("name", "city", "country"):
            if not isinstance(obj.get(key), str):
                raise CanonicalizationError(f"Location: missing required field {key!r}")

        longitude, latitude = (_coordinate(value) for value in coordinates)
        return cls(latitude, longitude, obj["name"], obj["city"], obj["country"])

    def __str__(self) -> str:
        return f"Location event {self.name}: latitude {self.latitude:.6f} longitude {self.longitude:.6f}"


@dataclass(frozen=True)
class Transport(EventData):
    type_tag: ClassVar[str] = "ambrosus.event.transport"

    name: str | None = None
    status: str | None = None
    vehicle: str | None = None


@dataclass(frozen=True)
class Message(EventData):
    type_tag: ClassVar[str] = "ambrosus.event.message"

    # AMB-NET stores the text under "name".
    message: str = field(metadata={"wire_key": "name"})


@dataclass(frozen=True)
class RawJson(EventData):
    """Section with a type tag nobody registered, kept as plain JSON."""

    payload: dict[str, Any]

    def __post_init__(self) -> None:
        if not isinstance(self.payload, dict):
            raise CanonicalizationError(f"RawJson: payload must be an object, got {type(self.payload).__name__}")
        object.__setattr__(self, "payload", copy.deepcopy(self.payload))

    @property
    def type(self) -> str | None:
        tag = self.payload.get(TYPE_KEY)
        return tag if isinstance(tag, str) else None

    def to_wire(self) -> dict[str, Any]:
        return copy.deepcopy(self.payload)

    @classmethod
    def from_wire(cls, obj: Mapping[str, Any]) -> "RawJson":
        return cls(dict(obj))

    def __hash__(self) -> int:
        return hash(canonical_json(self.payload))

    def __str__(self) -> str:
        return canonical_json(self.payload)


BUILTIN_SECTIONS: tuple[type[EventData], ...] = (Location, Transport, Message)


class SectionRegistry:
    """Maps ``type`` tags to section classes; unknown tags decode to RawJson."""

    def __init__(self, types: Mapping[str, type[EventData]] | None = None):
        self._types: dict[str, type[EventData]] = {}
        for tag, section_cls in (types or {}).items():
            self.register(section_cls, tag)

    @classmethod
    def default(cls) -> "SectionRegistry":
        return cls({section_cls.type_tag: section_cls for section_cls in BUILTIN_SECTIONS})

    def register(self, section_cls: type[EventData], type_tag: str | None = None) -> None:
        if not (isinstance(section_cls, type) and issubclass(section_cls, EventData)):
            raise TypeError(f"{section_cls!r} is not an EventData subclass")
        tag = type_tag or section_cls.type_tag
        if not tag:
            raise ValueError(f"{section_cls.__name__} has no type tag; pass type_tag explicitly")
        self._types[tag] = section_cls

    def lookup(self, type_tag: str) -> type[EventData] | None:
        return self._types.get(type_tag)

    def copy(self) -> "SectionRegistry":
        return SectionRegistry(self._types)

    def __contains__(self, type_tag: object) -> bool:
        return type_tag in self._types

    def encode(self, section: EventData) -> dict[str, Any]:
        return canonicalize(section.to_wire())

    def decode(self, obj: Any) -> EventData:
        if not isinstance(obj, dict):
            raise CanonicalizationError(f"event data element must be an object, got {type(obj).__name__}")
        tag = obj.get(TYPE_KEY)
        if not isinstance(tag, str):
            raise CanonicalizationError("event data element has no type tag")

        section_cls = self._types.get(tag)
        if section_cls is None:
            return RawJson.from_wire(obj)
        try:
            return section_cls.from_wire(obj)
        except CanonicalizationError:
            raise
        except (TypeError, ValueError, AttributeError) as err:
            raise CanonicalizationError(f"{section_cls.__name__}: {err}") from err

    def decode_all(self, items: Iterable[Any]) -> list[EventData]:
        """Decode a ``data`` array, skipping entries that cannot be decoded."""
        sections: list[EventData] = []
        for item in items:
            try:
                sections.append(self.decode(item))
            except CanonicalizationError as err:
                LOGGER.warning("skipping event data element: %s", err)
        return sections
