import json

import httpx
import pytest

from library_rec.models import ItemCategory
from library_rec import remote
from library_rec.remote import LibraryApiClient

BASE_URL = "http://library.test"


def make_client(handler, max_retries=3):
    transport = httpx.MockTransport(handler)
    http = httpx.Client(transport=transport, base_url=BASE_URL)
    return LibraryApiClient(client=http, max_retries=max_retries, retry_delay=0.0)


def test_requires_base_url_or_client():
    with pytest.raises(ValueError):
        LibraryApiClient(base_url="")


def test_token_sent_as_bearer_header():
    api = LibraryApiClient(base_url=BASE_URL, token="secret")
    try:
        assert api.client.headers["Authorization"] == "Bearer secret"
    finally:
        api.close()


def test_candidate_items_are_parsed():
    payload = [
        {"item_id": 7, "title": "Clean Code", "category": "SingleBook", "classification_number": "005.1"},
        {"item_id": 8, "title": "Daily News", "category": "Newspaper"},
        {"item_id": 9, "title": "Mystery Box", "category": "Board Game"},
    ]

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/items/recommendation-candidates"
        return httpx.Response(200, json=payload)

    with make_client(handler) as api:
        items = api.get_candidate_items()

    assert [item.item_id for item in items] == [7, 8, 9]
    assert items[0].classification_number == "005.1"
    assert items[1].category is ItemCategory.NEWSPAPER
    assert items[2].category is ItemCategory.OTHER


def test_missing_resources_map_to_none():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404)

    with make_client(handler) as api:
        assert api.get_primary_author(1) is None
        assert api.get_classification_code(1) is None
        assert api.reader_exists("nobody") is False


def test_author_and_reader_lookups():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/items/3/primary-author":
            return httpx.Response(200, json={"full_name": "Rowling"})
        if request.url.path == "/readers/alice@example.com":
            return httpx.Response(200, json={"reader_id": "r1"})
        if request.url.path == "/readers/alice@example.com/activities":
            return httpx.Response(200, json=[{"item_id": 3, "rating": 5, "favorite": True}])
        return httpx.Response(404)

    with make_client(handler) as api:
        assert api.get_primary_author(3) == "Rowling"
        assert api.reader_exists("alice@example.com")
        records = api.get_reader_interactions("alice@example.com")

    assert records[0].item_id == 3
    assert records[0].rating == 5
    assert records[0].favorite


def test_classification_codes_posted_in_one_request():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        seen.append((request.method, request.url.path, body))
        return httpx.Response(200, json={"codes": ["005.1", None]})

    with make_client(handler) as api:
        assert api.get_classification_codes([]) == []
        assert api.get_classification_codes([7, 8]) == ["005.1", None]

    assert seen == [("POST", "/items/classification-numbers", {"ids": [7, 8]})]


def test_classification_codes_length_mismatch_raises():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"codes": ["005.1"]})

    with make_client(handler) as api:
        with pytest.raises(ValueError):
            api.get_classification_codes([7, 8])


def test_popular_items_page():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.params["pageIndex"] == "2"
        assert request.url.params["pageSize"] == "1"
        return httpx.Response(200, json={
            "items": [{"item_id": 5, "title": "Dune"}],
            "page_index": 2,
            "page_size": 1,
            "total_pages": 4,
            "total_items": 4,
        })

    with make_client(handler) as api:
        page = api.get_popular_items(2, 1)

    assert [item.title for item in page.items] == ["Dune"]
    assert page.page_index == 2
    assert page.total_pages == 4


def test_server_errors_are_retried_then_raised():
    attempts = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(request.url.path)
        return httpx.Response(503)

    with make_client(handler, max_retries=3) as api:
        with pytest.raises(httpx.HTTPStatusError) as excinfo:
            api.get_candidate_items()

    assert excinfo.value.response.status_code == 503
    assert len(attempts) == 3


def test_transient_failure_recovers():
    attempts = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(1)
        if len(attempts) == 1:
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(200, json=[])

    with make_client(handler) as api:
        assert api.get_candidate_items() == []

    assert len(attempts) == 2


def test_client_errors_are_not_retried():
    attempts = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(1)
        return httpx.Response(401)

    with make_client(handler) as api:
        with pytest.raises(httpx.HTTPStatusError):
            api.get_candidate_items()

    assert len(attempts) == 1


def test_retries_back_off_and_name_the_failing_call(monkeypatch, caplog):
    sleeps = []
    monkeypatch.setattr(remote.time, "sleep", lambda s: sleeps.append(s))
    attempts = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(1)
        if len(attempts) < 3:
            return httpx.Response(502)
        return httpx.Response(200, json={"full_name": "Rowling"})

    transport = httpx.MockTransport(handler)
    http = httpx.Client(transport=transport, base_url=BASE_URL)
    with LibraryApiClient(client=http, max_retries=3, retry_delay=0.5) as api:
        with caplog.at_level("WARNING", logger="library_rec.remote"):
            assert api.get_primary_author(42) == "Rowling"

    assert sleeps == [0.5, 1.0]
    assert "GET /items/42/primary-author failed (HTTP 502), attempt 1/3" in caplog.text


def test_single_attempt_client_does_not_retry():
    attempts = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(1)
        raise httpx.ConnectTimeout("timed out", request=request)

    with make_client(handler, max_retries=1) as api:
        with pytest.raises(httpx.ConnectTimeout):
            api.reader_exists("r1")

    assert len(attempts) == 1
