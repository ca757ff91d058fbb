"""
Collaborators backed by the library application's REST API.

One ``LibraryApiClient`` satisfies the catalog, activity and popularity
interfaces so the engine can run against a live library instead of the local
SQLite copy. Connection failures and 5xx responses are retried with
exponential backoff; 404 means "absent" and any other error status
propagates as ``httpx.HTTPStatusError``.
"""
import logging
import time
from urllib.parse import quote

import httpx

from .config import (
    API_BASE_URL,
    API_TOKEN,
    HTTP_TIMEOUT,
    MAX_HTTP_RETRIES,
    HTTP_RETRY_DELAY,
    HTTP_BACKOFF_FACTOR,
)
from .models import CatalogItem, InteractionRecord, Page

logger = logging.getLogger(__name__)


def _is_retryable(resp: httpx.Response) -> bool:
    return resp.status_code >= 500


class LibraryApiClient:
    def __init__(
        self,
        base_url: str = API_BASE_URL,
        token: str | None = API_TOKEN,
        timeout: float = HTTP_TIMEOUT,
        max_retries: int = MAX_HTTP_RETRIES,
        retry_delay: float = HTTP_RETRY_DELAY,
        client: httpx.Client | None = None,
    ):
        if not base_url and client is None:
            raise ValueError("A base URL is required (set LIBRARY_REC_API_URL or pass --api-url)")

        headers = {"Accept": "application/json", "User-Agent": "library-rec/0.1"}
        if token:
            headers["Authorization"] = f"Bearer {token}"

        self.client = client or httpx.Client(
            base_url=base_url,
            headers=headers,
            timeout=timeout,
            follow_redirects=True,
        )
        self.max_attempts = max(1, max_retries)
        self.retry_delay = retry_delay

    def close(self) -> None:
        self.client.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        """
        Send one API call, retrying connection failures and 5xx responses.

        The final attempt is not caught: a connection error propagates as is
        and a 5xx is raised as ``httpx.HTTPStatusError``. Every other response
        is returned for the caller to interpret.
        """
        delay = self.retry_delay
        for attempt in range(1, self.max_attempts):
            try:
                resp = self.client.request(method, url, **kwargs)
            except httpx.TransportError as e:
                problem = f"{type(e).__name__}: {e}"
            else:
                if not _is_retryable(resp):
                    return resp
                problem = f"HTTP {resp.status_code}"

            logger.warning(
                f"{method} {url} failed ({problem}), attempt {attempt}/{self.max_attempts}; "
                f"retrying in {delay:.1f}s"
            )
            time.sleep(delay)
            delay *= HTTP_BACKOFF_FACTOR

        resp = self.client.request(method, url, **kwargs)
        if _is_retryable(resp):
            logger.error(f"{method} {url} still returning {resp.status_code} after {self.max_attempts} attempts")
            resp.raise_for_status()
        return resp

    def _get_json(self, url: str, allow_missing: bool = False, **kwargs):
        resp = self._request("GET", url, **kwargs)
        if allow_missing and resp.status_code == 404:
            return None
        resp.raise_for_status()
        return resp.json()

    # Catalog

    def get_candidate_items(self) -> list[CatalogItem]:
        payload = self._get_json("/items/recommendation-candidates")
        return [CatalogItem.from_dict(entry) for entry in payload]

    def get_primary_author(self, item_id: int) -> str | None:
        payload = self._get_json(f"/items/{item_id}/primary-author", allow_missing=True)
        if not payload:
            return None
        return payload.get("full_name") or None

    def get_classification_code(self, item_id: int) -> str | None:
        payload = self._get_json(f"/items/{item_id}/classification-number", allow_missing=True)
        if not payload:
            return None
        return payload.get("classification_number")

    def get_classification_codes(self, item_ids: list[int]) -> list[str | None]:
        if not item_ids:
            return []
        resp = self._request("POST", "/items/classification-numbers", json={"ids": list(item_ids)})
        resp.raise_for_status()
        codes = resp.json().get("codes", [])
        if len(codes) != len(item_ids):
            raise ValueError(
                f"Classification lookup returned {len(codes)} codes for {len(item_ids)} items"
            )
        return codes

    # Activity

    def reader_exists(self, reader_id: str) -> bool:
        return self._get_json(f"/readers/{quote(reader_id, safe='')}", allow_missing=True) is not None

    def get_reader_interactions(self, reader_id: str) -> list[InteractionRecord]:
        payload = self._get_json(f"/readers/{quote(reader_id, safe='')}/activities")
        return [InteractionRecord.from_dict(entry) for entry in payload]

    # Popularity

    def get_popular_items(self, page_index: int, page_size: int) -> Page:
        payload = self._get_json("/items/popular", params={"pageIndex": page_index, "pageSize": page_size})
        return Page(
            items=[CatalogItem.from_dict(entry) for entry in payload.get("items", [])],
            page_index=payload.get("page_index", page_index),
            page_size=payload.get("page_size", page_size),
            total_pages=payload.get("total_pages", 0),
            total_items=payload.get("total_items", 0),
        )
