"""
Async client for the remote document store (Cloud Firestore REST v1).

Only two operations are needed by the engine:

  update()  partial-field merge into one document, with server timestamps
            and array appends expressed as field transforms
  query()   equality lookup in a collection (profiles by pairing code)

Writes are fire-and-forget from the engine's point of view: nothing is read
back to confirm them. Transport errors, 429 and 5xx are retried with
exponential backoff; anything still failing surfaces as RemoteStoreError so
the caller can leave its local state unadvanced.
"""
import asyncio
import logging
from datetime import tzinfo
from typing import Any, Dict, List, Optional, Tuple, Type
from zoneinfo import ZoneInfo

import httpx

from wellcheck.remote.codec import (
    SERVER_TIMESTAMP,
    ArrayUnion,
    decode_fields,
    encode_fields,
    encode_value,
    nest_field_paths,
)

logger = logging.getLogger(__name__)


# ── Exceptions ────────────────────────────────────────────────────────────────

class RemoteStoreError(RuntimeError):
    """The remote store could not be reached or rejected the request."""


class RemoteWriteError(RemoteStoreError):
    """A write did not reach the remote store."""


# ── Main class ────────────────────────────────────────────────────────────────

class FirestoreClient:
    """
    Thin async wrapper over the Firestore REST API.

    Usage:
        client = FirestoreClient.from_settings(get_settings())
        await client.update("families/family_123", {
            "lastPhoneActivity": observed_at,
            "updateTimestamp": SERVER_TIMESTAMP,
        })
        await client.close()
    """

    def __init__(
        self,
        project_id: str,
        base_url: str = "https://firestore.googleapis.com/v1",
        api_token: str = "",
        timeout_seconds: float = 10.0,
        max_retries: int = 3,
        backoff_seconds: float = 0.5,
        tz: Optional[tzinfo] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Args:
            project_id: GCP project holding the database.
            base_url: API root; override for the emulator.
            api_token: OAuth bearer token. Empty for the emulator.
            tz: zone for naive datetimes handed to update().
            http_client: injected httpx client (tests use MockTransport).
        """
        self.project_id = project_id
        self.base_url = base_url.rstrip("/")
        self.max_retries = max_retries
        self.backoff_seconds = backoff_seconds
        self.tz = tz

        headers = {"Authorization": f"Bearer {api_token}"} if api_token else {}
        self._http = http_client or httpx.AsyncClient(timeout=timeout_seconds, headers=headers)

    @classmethod
    def from_settings(cls, settings) -> "FirestoreClient":
        return cls(
            project_id=settings.firestore_project_id,
            base_url=settings.firestore_base_url,
            api_token=settings.firestore_api_token,
            timeout_seconds=settings.remote_timeout_seconds,
            max_retries=settings.remote_max_retries,
            backoff_seconds=settings.remote_backoff_seconds,
            tz=ZoneInfo(settings.timezone),
        )

    @property
    def documents_root(self) -> str:
        return f"projects/{self.project_id}/databases/(default)/documents"

    def document_name(self, path: str) -> str:
        return f"{self.documents_root}/{path.strip('/')}"

    async def update(self, path: str, fields: Dict[str, Any]) -> None:
        """
        Merge `fields` into the document at `path`, creating it if needed.

        Keys are field paths ("alerts.survival" replaces only that map).
        Values may be SERVER_TIMESTAMP or ArrayUnion(...).

        Raises:
            RemoteWriteError: after retries are exhausted or on a 4xx.
        """
        plain: Dict[str, Any] = {}
        transforms: List[Dict[str, Any]] = []
        for field_path, value in fields.items():
            if value is SERVER_TIMESTAMP:
                transforms.append({"fieldPath": field_path, "setToServerValue": "REQUEST_TIME"})
            elif isinstance(value, ArrayUnion):
                transforms.append({
                    "fieldPath": field_path,
                    "appendMissingElements": {
                        "values": [encode_value(v, self.tz) for v in value.values],
                    },
                })
            else:
                plain[field_path] = value

        write: Dict[str, Any] = {
            "update": {
                "name": self.document_name(path),
                "fields": encode_fields(nest_field_paths(plain), self.tz),
            },
            "updateMask": {"fieldPaths": list(plain)},
        }
        if transforms:
            write["updateTransforms"] = transforms

        await self._post(f"{self.documents_root}:commit", {"writes": [write]}, RemoteWriteError)

    async def query(
        self,
        collection: str,
        field: str,
        value: Any,
        limit: Optional[int] = None,
    ) -> List[Tuple[str, Dict[str, Any]]]:
        """
        Documents in `collection` whose `field` equals `value`.

        Returns:
            (document_id, decoded_fields) pairs.

        Raises:
            RemoteStoreError: after retries are exhausted or on a 4xx.
        """
        structured: Dict[str, Any] = {
            "from": [{"collectionId": collection}],
            "where": {
                "fieldFilter": {
                    "field": {"fieldPath": field},
                    "op": "EQUAL",
                    "value": encode_value(value, self.tz),
                },
            },
        }
        if limit is not None:
            structured["limit"] = limit

        rows = await self._post(
            f"{self.documents_root}:runQuery",
            {"structuredQuery": structured},
            RemoteStoreError,
        )

        results = []
        for row in rows:
            doc = row.get("document")
            if not doc:
                continue  # runQuery emits a bare readTime entry when nothing matches
            doc_id = doc["name"].rsplit("/", 1)[-1]
            results.append((doc_id, decode_fields(doc.get("fields", {}))))
        return results

    async def close(self) -> None:
        await self._http.aclose()

    async def _post(self, resource: str, body: Dict[str, Any], error_cls: Type[RemoteStoreError]) -> Any:
        url = f"{self.base_url}/{resource}"
        last_error: Optional[Exception] = None

        for attempt in range(self.max_retries + 1):
            try:
                resp = await self._http.post(url, json=body)
            except httpx.TransportError as exc:
                last_error = exc
            else:
                if resp.status_code == 429 or resp.status_code >= 500:
                    last_error = error_cls(f"HTTP {resp.status_code}: {resp.text[:200]}")
                elif resp.is_error:
                    raise error_cls(f"HTTP {resp.status_code}: {resp.text[:200]}")
                else:
                    return resp.json()

            if attempt < self.max_retries:
                delay = self.backoff_seconds * (2 ** attempt)
                logger.warning(
                    "Remote request failed (%s), retry %d/%d in %.1fs",
                    last_error, attempt + 1, self.max_retries, delay,
                )
                await asyncio.sleep(delay)

        raise error_cls(f"Remote request failed after {self.max_retries + 1} attempts: {last_error}") from last_error
