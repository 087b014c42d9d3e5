"""Ambrosus Python SDK."""

import logging

from .canonical import canonical_json, canonicalize, element_with_path
from .client import AmbrosusClient, QueryResult, SequenceCounter, create_client
from .crypto import Signer, address_of, hash_message, recover_address, sign, verify
from .errors import (
    AmbrosusError,
    CanonicalizationError,
    CryptoError,
    DeserializationError,
    ValidationError,
)
from .models import Asset, AssetBuilder, Event, EventBuilder, MetaData
from .sections import EventData, Location, Message, RawJson, SectionRegistry, Transport
from .serialization import (
    EntityCodec,
    compute_data_hash,
    compute_signature,
    create_group_token,
    deserialize,
    serialize,
    verify_data_hash,
    verify_signature,
)
from .type_index import TypeIndex

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "AmbrosusClient",
    "create_client",
    "QueryResult",
    "SequenceCounter",
    "AmbrosusError",
    "CanonicalizationError",
    "CryptoError",
    "DeserializationError",
    "ValidationError",
    "canonicalize",
    "canonical_json",
    "element_with_path",
    "Signer",
    "hash_message",
    "sign",
    "recover_address",
    "verify",
    "address_of",
    "Asset",
    "AssetBuilder",
    "Event",
    "EventBuilder",
    "MetaData",
    "EventData",
    "Location",
    "Message",
    "Transport",
    "RawJson",
    "SectionRegistry",
    "TypeIndex",
    "EntityCodec",
    "serialize",
    "deserialize",
    "compute_data_hash",
    "compute_signature",
    "verify_signature",
    "verify_data_hash",
    "create_group_token",
]

__version__ = "1.0.0"
