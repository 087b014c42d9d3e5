"""Wire codec for assets and events, plus the standalone hashing and signing primitives."""

from __future__ import annotations

import base64
import json
import logging
from typing import Any, Mapping, Union

from .canonical import canonical_json, canonicalize
from .crypto import Signer, SignerLike, as_signer, hash_message, verify
from .errors import AmbrosusError, CryptoError, DeserializationError
from .models import Asset, Event, MetaData
from .sections import SectionRegistry
from .types import GroupToken, WireAsset, WireEntity, WireEvent

LOGGER = logging.getLogger(__name__)

ACCESS_LEVEL = "accessLevel"
ASSET_ID = "assetId"
CONTENT = "content"
CREATED_BY = "createdBy"
DATA = "data"
DATA_HASH = "dataHash"
EVENT_ID = "eventId"
ID_DATA = "idData"
METADATA = "metadata"
SEQUENCE_NUMBER = "sequenceNumber"
SIGNATURE = "signature"
TIMESTAMP = "timestamp"
VALID_UNTIL = "validUntil"

Entity = Union[Asset, Event]
_DECODE_ERRORS = (AmbrosusError, KeyError, TypeError, ValueError, AttributeError)


def compute_data_hash(data: list[Any]) -> str:
    return hash_message(canonical_json(data))


def compute_signature(id_data: Mapping[str, Any], key: SignerLike) -> str:
    return as_signer(key).sign(canonical_json(id_data))


def _load(wire: Any) -> dict[str, Any]:
    if isinstance(wire, (str, bytes, bytearray)):
        try:
            wire = json.loads(wire)
        except ValueError as err:
            raise DeserializationError(f"not valid JSON: {err}") from err
    if not isinstance(wire, dict):
        raise DeserializationError(f"expected a JSON object, got {type(wire).__name__}")
    return wire


def _object(obj: Mapping[str, Any], key: str) -> dict[str, Any]:
    value = obj.get(key)
    if not isinstance(value, dict):
        raise DeserializationError(f"{key!r} must be an object")
    return value


def _required(obj: Mapping[str, Any], key: str, kind: type) -> Any:
    value = obj.get(key)
    if isinstance(value, bool) or not isinstance(value, kind):
        raise DeserializationError(f"{key!r} must be a {kind.__name__} (got {value!r})")
    return value


def _optional_str(obj: Mapping[str, Any], key: str) -> str | None:
    value = obj.get(key)
    if value is not None and not isinstance(value, str):
        raise DeserializationError(f"{key!r} must be a string (got {value!r})")
    return value


class EntityCodec:
    """Serializes entities to the wire layout and parses them back.

    ``signer`` is only needed to serialize entities that have no signature
    yet. ``registry`` decides which typed section class each ``type`` tag of an
    event's data decodes into.
    """

    def __init__(self, signer: SignerLike | None = None, registry: SectionRegistry | None = None):
        self._signer: Signer | None = as_signer(signer) if signer is not None else None
        self.registry = registry if registry is not None else SectionRegistry.default()

    def _sign(self, id_data: Mapping[str, Any]) -> str:
        if self._signer is None:
            raise CryptoError("entity has no signature and no signing key was provided")
        return compute_signature(id_data, self._signer)

    def _envelope(self, id_key: str, entity_id: str | None, content: dict[str, Any], metadata: MetaData | None) -> dict[str, Any]:
        body: dict[str, Any] = {CONTENT: content}
        if entity_id is not None:
            body[id_key] = entity_id
        if metadata is not None:
            body[METADATA] = metadata.to_wire()
        return canonicalize(body)

    def _asset_id_data(self, asset: Asset) -> dict[str, Any]:
        return canonicalize(
            {
                CREATED_BY: asset.created_by,
                SEQUENCE_NUMBER: asset.sequence_number,
                TIMESTAMP: asset.timestamp,
            }
        )

    def _event_id_data(self, event: Event, data: list[dict[str, Any]]) -> dict[str, Any]:
        return canonicalize(
            {
                ACCESS_LEVEL: event.access_level,
                ASSET_ID: event.asset_id,
                CREATED_BY: event.created_by,
                DATA_HASH: event.data_hash if event.data_hash is not None else compute_data_hash(data),
                TIMESTAMP: event.timestamp,
            }
        )

    def _encode_data(self, event: Event) -> list[dict[str, Any]]:
        return [self.registry.encode(section) for section in event.data]

    def serialize_asset(self, asset: Asset) -> WireAsset:
        id_data = self._asset_id_data(asset)
        content = {
            ID_DATA: id_data,
            SIGNATURE: asset.signature if asset.signature is not None else self._sign(id_data),
        }
        return self._envelope(ASSET_ID, asset.asset_id, content, asset.metadata)

    def serialize_event(self, event: Event) -> WireEvent:
        data = self._encode_data(event)
        id_data = self._event_id_data(event, data)
        content = {
            ID_DATA: id_data,
            DATA: data,
            SIGNATURE: event.signature if event.signature is not None else self._sign(id_data),
        }
        return self._envelope(EVENT_ID, event.event_id, content, event.metadata)

    def serialize(self, entity: Entity) -> WireEntity:
        if isinstance(entity, Asset):
            return self.serialize_asset(entity)
        if isinstance(entity, Event):
            return self.serialize_event(entity)
        raise TypeError(f"cannot serialize {type(entity).__name__}")

    def to_json(self, entity: Entity) -> str:
        return canonical_json(self.serialize(entity))

    def _decode_asset(self, obj: dict[str, Any]) -> Asset:
        content = _object(obj, CONTENT)
        id_data = _object(content, ID_DATA)
        return Asset(
            asset_id=_optional_str(obj, ASSET_ID),
            created_by=_required(id_data, CREATED_BY, str),
            timestamp=_required(id_data, TIMESTAMP, int),
            sequence_number=_required(id_data, SEQUENCE_NUMBER, int),
            signature=_optional_str(content, SIGNATURE),
            metadata=MetaData.from_wire(obj.get(METADATA)),
        )

    def _decode_event(self, obj: dict[str, Any]) -> Event:
        content = _object(obj, CONTENT)
        id_data = _object(content, ID_DATA)
        data = content.get(DATA, [])
        if not isinstance(data, list):
            raise DeserializationError(f"{DATA!r} must be an array")
        return Event(
            event_id=_optional_str(obj, EVENT_ID),
            asset_id=_required(id_data, ASSET_ID, str),
            access_level=_required(id_data, ACCESS_LEVEL, int),
            created_by=_required(id_data, CREATED_BY, str),
            timestamp=_required(id_data, TIMESTAMP, int),
            data=tuple(self.registry.decode_all(data)),
            data_hash=_optional_str(id_data, DATA_HASH),
            signature=_optional_str(content, SIGNATURE),
            metadata=MetaData.from_wire(obj.get(METADATA)),
        )

    def deserialize_asset(self, wire: Any) -> Asset | None:
        try:
            return self._decode_asset(_load(wire))
        except _DECODE_ERRORS as err:
            LOGGER.warning("could not decode asset: %s", err)
            return None

    def deserialize_event(self, wire: Any) -> Event | None:
        try:
            return self._decode_event(_load(wire))
        except _DECODE_ERRORS as err:
            LOGGER.warning("could not decode event: %s", err)
            return None

    def deserialize(self, wire: Any) -> Entity | None:
        """Parse an asset or an event, telling them apart by their identity fields."""
        try:
            obj = _load(wire)
        except DeserializationError as err:
            LOGGER.warning("could not decode entity: %s", err)
            return None

        content = obj.get(CONTENT)
        id_data = content.get(ID_DATA) if isinstance(content, dict) else None
        if EVENT_ID in obj or (isinstance(id_data, dict) and ASSET_ID in id_data):
            return self.deserialize_event(obj)
        return self.deserialize_asset(obj)

    def verify_signature(self, entity: Entity | Mapping[str, Any]) -> bool:
        """Check that the signature over ``idData`` was made by ``idData.createdBy``.

        Accepts an entity or an already serialized body. Never signs, never
        raises: anything missing or malformed is simply ``False``.
        """
        try:
            if isinstance(entity, Mapping):
                id_data = entity[CONTENT][ID_DATA]
                signature = entity[CONTENT][SIGNATURE]
            elif isinstance(entity, Asset):
                id_data, signature = self._asset_id_data(entity), entity.signature
            else:
                id_data, signature = self._event_id_data(entity, self._encode_data(entity)), entity.signature
            return verify(canonical_json(id_data), id_data[CREATED_BY], signature)
        except Exception as err:
            LOGGER.debug("signature check failed: %s", err)
            return False

    def verify_data_hash(self, event: Event | Mapping[str, Any]) -> bool:
        try:
            if isinstance(event, Mapping):
                data = event[CONTENT][DATA]
                claimed = event[CONTENT][ID_DATA][DATA_HASH]
            else:
                data, claimed = self._encode_data(event), event.data_hash
            return claimed is not None and compute_data_hash(data) == claimed
        except Exception as err:
            LOGGER.debug("data hash check failed: %s", err)
            return False


def serialize(entity: Entity, signer: SignerLike | None = None) -> WireEntity:
    return EntityCodec(signer).serialize(entity)


def deserialize(wire: Any, registry: SectionRegistry | None = None) -> Entity | None:
    return EntityCodec(registry=registry).deserialize(wire)


def verify_signature(entity: Entity | Mapping[str, Any]) -> bool:
    return EntityCodec().verify_signature(entity)


def verify_data_hash(event: Event | Mapping[str, Any]) -> bool:
    return EntityCodec().verify_data_hash(event)


def create_group_token(signer: SignerLike, valid_until: int) -> str:
    """Signed, base64-encoded proof that the key holder grants access until ``valid_until``."""
    signer = as_signer(signer)
    id_data = {CREATED_BY: signer.address, VALID_UNTIL: valid_until}
    token: GroupToken = canonicalize({ID_DATA: id_data, SIGNATURE: compute_signature(id_data, signer)})
    return base64.b64encode(canonical_json(token).encode("utf-8")).decode("ascii")
