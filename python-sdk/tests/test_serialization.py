from __future__ import annotations

import base64
import copy
import json
from pathlib import Path

import pytest

from ambrosus.canonical import canonical_json, canonicalize
from ambrosus.crypto import Signer, hash_message, verify
from ambrosus.errors import CryptoError
from ambrosus.models import Asset, AssetBuilder, Event, EventBuilder, MetaData
from ambrosus.sections import Location, Message, RawJson, SectionRegistry, Transport
from ambrosus.serialization import (
    EntityCodec,
    compute_data_hash,
    compute_signature,
    create_group_token,
    deserialize,
    serialize,
    verify_data_hash,
    verify_signature,
)

ROOT = Path(__file__).resolve().parents[2]
VECTORS = ROOT / "test_vectors"

PRIVATE_KEY = "0x0123456789abcdef0123456789abcdef0123456789abcdef0123456789abcdef"
ASSET_ID = "0x30dbe10b0596e03810a051542302488fd45f8cc5a441cf202fd4b3ece4317f5e"


def load_fixture(name: str) -> dict:
    return json.loads((VECTORS / name).read_text(encoding="utf-8"))


def _signer() -> Signer:
    return Signer.from_key(PRIVATE_KEY)


def _unsigned_event(**overrides) -> Event:
    builder = (
        EventBuilder()
        .set_asset_id(ASSET_ID)
        .set_access_level(0)
        .set_created_by(_signer().address)
        .set_timestamp(1533824995)
        .add_data(RawJson({"type": "ambrosus.event.customevent", "customField": "customValue"}))
        .add_data(Message("Product placed on shelf"))
        .add_data(Location(1.5, 2.5, "loc", "city", "country"))
    )
    for name, value in overrides.items():
        setattr(builder, name, value)
    return builder.build()


def test_asset_fixture_round_trip() -> None:
    fixture = load_fixture("valid_asset.json")
    asset = deserialize(fixture)

    assert isinstance(asset, Asset)
    assert asset.asset_id == ASSET_ID
    assert asset.sequence_number == 3
    assert asset.timestamp == 1503424923
    assert asset.created_by == "0x9566AC7630F7075a981670709de09ff9c3032D9c"
    assert asset.metadata == MetaData("0x352d6548599186d04b20a1bbf269797fc1e5e2f2f887f12aba04a182cabd230b", 1531412126)

    assert serialize(asset) == canonicalize(fixture)
    assert EntityCodec().to_json(asset) == canonical_json(fixture)


def test_event_fixture_round_trip() -> None:
    fixture = load_fixture("valid_event.json")
    event = deserialize(json.dumps(fixture))

    assert isinstance(event, Event)
    assert event.event_id == "0x5d3b2a65e3897283df06b5625cb85c8842c6a952e523c33ffcecb96ee4c53ea9"
    assert event.asset_id == ASSET_ID
    assert event.access_level == 0
    assert event.data_hash == "0xfa3e252c199657c116e7ada2b8ae083fac7e0915c8abf059dc6af6b02f2f7d21"
    assert event.data == (
        RawJson({"customField": "customValue", "type": "ambrosus.event.customevent"}),
        Message("Product placed on shelf"),
    )

    assert EntityCodec().to_json(event) == canonical_json(fixture)


def test_unknown_section_round_trips_byte_identical() -> None:
    section = {"type": "x.unknown", "nested": {"b": [3, {"d": 1, "c": 2}], "a": None}, "list": []}
    wire = load_fixture("valid_event.json")
    wire["content"]["data"] = [section]

    event = EntityCodec().deserialize_event(wire)
    assert event is not None
    assert canonical_json(EntityCodec().serialize_event(event)["content"]["data"]) == canonical_json([section])


def test_missing_hash_and_signature_get_computed() -> None:
    event = _unsigned_event()
    wire = EntityCodec(_signer()).serialize_event(event)
    content = wire["content"]

    assert list(wire) == ["content"]
    assert list(content) == ["data", "idData", "signature"]
    assert list(content["idData"]) == ["accessLevel", "assetId", "createdBy", "dataHash", "timestamp"]
    assert content["idData"]["dataHash"] == compute_data_hash(content["data"])
    assert content["signature"] == compute_signature(content["idData"], _signer())
    assert verify(canonical_json(content["idData"]), _signer().address, content["signature"])

    parsed = deserialize(wire)
    assert verify_signature(parsed)
    assert verify_data_hash(parsed)


def test_existing_hash_and_signature_are_kept() -> None:
    event = _unsigned_event(data_hash="0xabc", signature="0xdef")
    content = EntityCodec(_signer()).serialize_event(event)["content"]
    assert content["idData"]["dataHash"] == "0xabc"
    assert content["signature"] == "0xdef"


def test_serializing_unsigned_entity_without_key_fails() -> None:
    with pytest.raises(CryptoError, match="no signing key"):
        EntityCodec().serialize(_unsigned_event())


def test_asset_id_data_order_and_signature() -> None:
    signer = _signer()
    asset = AssetBuilder().set_created_by(signer.address).set_timestamp(123).set_sequence_number(3).build()
    wire = serialize(asset, signer)
    id_data = wire["content"]["idData"]

    assert list(id_data) == ["createdBy", "sequenceNumber", "timestamp"]
    assert canonical_json(id_data) == f'{{"createdBy":"{signer.address}","sequenceNumber":3,"timestamp":123}}'
    assert verify(canonical_json(id_data), signer.address, wire["content"]["signature"])
    assert verify_signature(wire)
    assert verify_signature(deserialize(wire))


@pytest.mark.parametrize("field,value", [("timestamp", 124), ("sequenceNumber", 4), ("createdBy", "0x9566AC7630F7075a981670709de09ff9c3032D9c")])
def test_mutating_id_data_invalidates_signature(field: str, value) -> None:
    signer = _signer()
    asset = AssetBuilder().set_created_by(signer.address).set_timestamp(123).set_sequence_number(3).build()
    wire = copy.deepcopy(serialize(asset, signer))
    wire["content"]["idData"][field] = value
    assert verify_signature(wire) is False


def test_mutated_entity_keeps_stale_signature() -> None:
    signer = _signer()
    asset = deserialize(serialize(AssetBuilder().set_created_by(signer.address).set_timestamp(123).set_sequence_number(3).build(), signer))
    changed = AssetBuilder.from_existing(asset).set_timestamp(999).build()

    assert changed.signature == asset.signature
    assert verify_signature(asset) is True
    assert verify_signature(changed) is False


def test_tampered_data_fails_data_hash() -> None:
    wire = EntityCodec(_signer()).serialize_event(_unsigned_event())
    assert verify_data_hash(wire)

    tampered = copy.deepcopy(wire)
    tampered["content"]["data"][1]["name"] = "Product removed from shelf"
    assert verify_data_hash(tampered) is False
    assert verify_signature(tampered) is True


def test_data_hash_ignores_key_order_but_not_element_order() -> None:
    a = {"type": "t", "x": 1, "y": {"q": 1, "p": 2}}
    a_permuted = {"y": {"p": 2, "q": 1}, "x": 1, "type": "t"}
    b = {"type": "u"}

    assert compute_data_hash([a, b]) == compute_data_hash([a_permuted, b])
    assert compute_data_hash([a, b]) != compute_data_hash([b, a])
    assert compute_data_hash([]) == hash_message("[]")


def test_verify_functions_never_raise() -> None:
    assert verify_signature({}) is False
    assert verify_signature({"content": {"idData": {"createdBy": "x"}, "signature": "0x00"}}) is False
    assert verify_signature(AssetBuilder().build()) is False
    assert verify_data_hash({"content": None}) is False
    assert verify_data_hash(_unsigned_event()) is False


def test_verify_does_not_sign_with_codec_key() -> None:
    codec = EntityCodec(_signer())
    asset = AssetBuilder().set_created_by(_signer().address).set_timestamp(1).set_sequence_number(1).build()
    assert codec.verify_signature(asset) is False


@pytest.mark.parametrize(
    "wire",
    [
        "not json",
        "[]",
        {},
        {"content": []},
        {"content": {"idData": {"createdBy": "x", "timestamp": "later", "sequenceNumber": 1}}},
        {"content": {"idData": {"createdBy": "x", "timestamp": 1, "sequenceNumber": -1}}},
    ],
)
def test_malformed_assets_decode_to_none(wire, caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level("WARNING", logger="ambrosus.serialization"):
        assert EntityCodec().deserialize_asset(wire) is None
    assert caplog.records


@pytest.mark.parametrize(
    "mutate",
    [
        lambda w: w["content"]["idData"].pop("assetId"),
        lambda w: w["content"]["idData"].pop("accessLevel"),
        lambda w: w["content"]["idData"].update(accessLevel=True),
        lambda w: w["content"].update(data={"not": "a list"}),
        lambda w: w.update(eventId=5),
    ],
)
def test_malformed_events_decode_to_none(mutate) -> None:
    wire = load_fixture("valid_event.json")
    mutate(wire)
    assert EntityCodec().deserialize_event(wire) is None


def test_deserialize_tells_assets_from_events() -> None:
    assert isinstance(deserialize(load_fixture("valid_asset.json")), Asset)
    assert isinstance(deserialize(load_fixture("valid_event.json")), Event)
    assert deserialize("{") is None


def test_custom_registry_is_used_for_decoding() -> None:
    registry = SectionRegistry()
    registry.register(Transport)
    wire = load_fixture("valid_event.json")
    wire["content"]["data"].append({"type": "ambrosus.event.transport", "vehicle": "truck"})

    event = deserialize(wire, registry)
    assert event.data == (
        RawJson({"customField": "customValue", "type": "ambrosus.event.customevent"}),
        RawJson({"name": "Product placed on shelf", "type": "ambrosus.event.message"}),
        Transport(vehicle="truck"),
    )


def test_group_token() -> None:
    signer = _signer()
    token = json.loads(base64.b64decode(create_group_token(signer, 1600000000)))

    assert list(token) == ["idData", "signature"]
    assert token["idData"] == {"createdBy": signer.address, "validUntil": 1600000000}
    assert verify(canonical_json(token["idData"]), signer.address, token["signature"])


def test_decoded_typed_sections_keep_their_data_hash() -> None:
    wire = load_fixture("valid_event.json")
    wire["content"]["data"] = [
        {
            "type": "ambrosus.asset.location",
            "name": "n",
            "city": "c",
            "country": "k",
            "location": {"geometry": {"type": "Point", "coordinates": [13, 52]}},
            "extra": {"z": 1, "a": [1, 2]},
        },
        {"type": "ambrosus.event.message", "name": "hello", "lang": "en"},
    ]
    wire["content"]["idData"]["dataHash"] = compute_data_hash(wire["content"]["data"])
    assert verify_data_hash(wire) is True

    event = deserialize(wire)
    assert isinstance(event.data[0], Location)
    assert verify_data_hash(event) is True
    assert canonical_json(EntityCodec().serialize_event(event)["content"]["data"]) == canonical_json(wire["content"]["data"])


def test_metadata_with_one_key_round_trips() -> None:
    wire = load_fixture("valid_asset.json")
    wire["metadata"] = {"bundleId": "0xbundle"}

    asset = deserialize(wire)
    assert asset.metadata == MetaData("0xbundle", None)
    assert serialize(asset)["metadata"] == {"bundleId": "0xbundle"}
