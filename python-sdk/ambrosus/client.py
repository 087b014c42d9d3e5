from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Generic, Mapping, TypeVar

import httpx

from .crypto import Signer, SignerLike, as_signer
from .errors import AmbrosusError
from .models import Asset, AssetBuilder, Event, EventBuilder
from .sections import EventData, SectionRegistry
from .serialization import EntityCodec, create_group_token

LOGGER = logging.getLogger(__name__)

MAX_SEQUENCE_NUMBER = 1_000_000
USER_AGENT = "ambrosus-py/1.0.0"

T = TypeVar("T")


def _normalize_base(url: str) -> str:
    return str(url or "").rstrip("/")


def _unix_timestamp() -> int:
    return int(time.time())


class SequenceCounter:
    """Per-session asset counter: 1, 2, ..., bound - 1, 0, 1, ..."""

    def __init__(self, bound: int = MAX_SEQUENCE_NUMBER, start: int = 0):
        if bound <= 0:
            raise ValueError("sequence bound must be positive")
        self.bound = bound
        self._value = start % bound
        self._lock = threading.Lock()

    @property
    def value(self) -> int:
        return self._value

    def next(self) -> int:
        with self._lock:
            self._value = (self._value + 1) % self.bound
            return self._value


@dataclass(frozen=True)
class QueryResult(Generic[T]):
    result_count: int
    results: list[T] = field(default_factory=list)


class AmbrosusClient:
    def __init__(
        self,
        base_url: str,
        private_key: SignerLike,
        timeout_ms: int = 30_000,
        http_client: httpx.Client | None = None,
        registry: SectionRegistry | None = None,
        sequence_bound: int = MAX_SEQUENCE_NUMBER,
    ):
        self.base_url = _normalize_base(base_url)
        self.timeout_ms = timeout_ms
        self._signer: Signer = as_signer(private_key)
        self.registry = registry if registry is not None else SectionRegistry.default()
        self.codec = EntityCodec(self._signer, self.registry)
        self.sequence = SequenceCounter(sequence_bound)
        self._http = http_client or httpx.Client(timeout=self.timeout_ms / 1000)

    @property
    def address(self) -> str:
        return self._signer.address

    def register_section(self, section_cls: type[EventData], type_tag: str | None = None) -> None:
        self.registry.register(section_cls, type_tag)

    def complete_asset(self, builder: AssetBuilder) -> AssetBuilder:
        if builder.created_by is None:
            builder.set_created_by(self.address)
        if builder.timestamp is None:
            builder.set_timestamp(_unix_timestamp())
        if builder.sequence_number is None:
            builder.set_sequence_number(self.sequence.next())
        return builder

    def complete_event(self, builder: EventBuilder) -> EventBuilder:
        if builder.created_by is None:
            builder.set_created_by(self.address)
        if builder.timestamp is None:
            builder.set_timestamp(_unix_timestamp())
        if builder.access_level is None:
            builder.set_access_level(0)
        return builder

    def _request(self, method: str, path: str, *, json: Any = None, params: Mapping[str, Any] | None = None) -> Any:
        url = f"{self.base_url}/{path}"
        headers = {"Accept": "application/json", "User-Agent": USER_AGENT}
        if json is not None:
            headers["Content-Type"] = "application/json"

        LOGGER.debug("%s %s", method, url)
        try:
            resp = self._http.request(method, url, headers=headers, json=json, params=params)
        except httpx.TimeoutException as err:
            raise AmbrosusError("Request timed out", 408) from err
        except httpx.HTTPError as err:
            raise AmbrosusError(str(err)) from err

        try:
            data = resp.json()
        except ValueError:
            data = {}

        if not resp.is_success:
            message = (
                data.get("reason") if isinstance(data, dict) else None
            ) or (
                (data.get("error") or {}).get("message") if isinstance(data, dict) and isinstance(data.get("error"), dict) else None
            ) or f"HTTP {resp.status_code}"
            raise AmbrosusError(message, resp.status_code, data)

        return data

    def _query(self, path: str, params: Mapping[str, Any] | None, decode) -> QueryResult:
        data = self._request("GET", path, params=params)
        if not isinstance(data, dict):
            return QueryResult(0)
        results = [entity for entity in (decode(item) for item in data.get("results") or []) if entity is not None]
        count = data.get("resultCount")
        return QueryResult(count if isinstance(count, int) else len(results), results)

    def create_asset(self, builder: AssetBuilder) -> Asset | None:
        asset = self.complete_asset(builder).build()
        data = self._request("POST", "assets", json=self.codec.serialize_asset(asset))
        return self.codec.deserialize_asset(data)

    def create_event(self, builder: EventBuilder) -> Event | None:
        event = self.complete_event(builder).build()
        data = self._request("POST", f"assets/{event.asset_id}/events", json=self.codec.serialize_event(event))
        return self.codec.deserialize_event(data)

    def get_asset(self, asset_id: str) -> Asset | None:
        return self.codec.deserialize_asset(self._request("GET", f"assets/{asset_id}"))

    def get_events(self, asset_id: str) -> QueryResult[Event]:
        return self.find_events({"assetId": asset_id})

    def find_events(self, params: Mapping[str, Any] | None = None) -> QueryResult[Event]:
        return self._query("events", params, self.codec.deserialize_event)

    def find_assets(self, params: Mapping[str, Any] | None = None) -> QueryResult[Asset]:
        return self._query("assets", params, self.codec.deserialize_asset)

    def get_asset_with_events(self, asset_id: str) -> Asset | None:
        asset = self.get_asset(asset_id)
        if asset is None:
            return None
        events = self.get_events(asset.asset_id or asset_id)
        return AssetBuilder.from_existing(asset).add_events(events.results).build()

    def create_group_token(self, valid_until: int) -> str:
        return create_group_token(self._signer, valid_until)

    def verify_signature(self, entity: Asset | Event) -> bool:
        return self.codec.verify_signature(entity)

    def verify_data_hash(self, event: Event) -> bool:
        return self.codec.verify_data_hash(event)

    def close(self):
        self._http.close()

    def __enter__(self) -> "AmbrosusClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def create_client(**kwargs) -> AmbrosusClient:
    return AmbrosusClient(**kwargs)
