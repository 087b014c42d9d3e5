from __future__ import annotations

from typing import Any, TypedDict

WireEntity = dict[str, Any]


class WireMetadata(TypedDict, total=False):
    bundleId: str
    entityUploadTimestamp: int


class AssetIdData(TypedDict):
    createdBy: str
    sequenceNumber: int
    timestamp: int


class EventIdData(TypedDict):
    accessLevel: int
    assetId: str
    createdBy: str
    dataHash: str
    timestamp: int


class AssetContent(TypedDict):
    idData: AssetIdData
    signature: str


class EventContent(TypedDict):
    idData: EventIdData
    data: list[dict[str, Any]]
    signature: str


class WireAsset(TypedDict, total=False):
    """Body of ``POST /assets`` and of asset responses."""

    assetId: str
    content: AssetContent
    metadata: WireMetadata


class WireEvent(TypedDict, total=False):
    """Body of ``POST /assets/{assetId}/events`` and of event responses."""

    eventId: str
    content: EventContent
    metadata: WireMetadata


class GroupTokenIdData(TypedDict):
    createdBy: str
    validUntil: int


class GroupToken(TypedDict):
    idData: GroupTokenIdData
    signature: str
