"""End-to-end tests of the /books HTTP API against in-memory collaborators."""

import pytest
from fastapi.testclient import TestClient

from books_api.core.storage import InMemoryCacheStorage
from tests.fixtures.dummies import RecordingNotifier

DUNE = {"title": "Dune", "author": "Herbert", "year": 1965}


def create(client: TestClient, **overrides) -> dict:
    response = client.post("/books", json={**DUNE, **overrides})
    assert response.status_code == 201, response.text
    return response.json()


class TestBookLifecycle:
    """Walk a single book through create, read, update and delete."""

    def test_full_lifecycle(self, client: TestClient, notifier: RecordingNotifier):
        created = create(client)
        book_id = created["id"]
        assert created == {"id": book_id, **DUNE}

        response = client.get(f"/books/{book_id}")
        assert response.status_code == 200
        assert response.json() == created

        response = client.put(f"/books/{book_id}", json={**DUNE, "year": 1966})
        assert response.status_code == 200
        assert response.json() == {"id": book_id, **DUNE, "year": 1966}

        response = client.delete(f"/books/{book_id}")
        assert response.status_code == 200
        assert response.json() == {"message": "Book deleted successfully"}

        response = client.get(f"/books/{book_id}")
        assert response.status_code == 404
        assert response.json() == {"error": "Book not found"}

        assert notifier.messages == [
            "New book added: Dune",
            "Book updated: Dune",
            f"Book deleted: {book_id}",
        ]
        assert {topic for topic, _ in notifier.events} == {"book_events"}

    def test_ids_are_distinct(self, client: TestClient):
        first = create(client)
        second = create(client, title="Children of Dune")

        assert first["id"] != second["id"]

    def test_list_returns_books_in_id_order(self, client: TestClient):
        created = [create(client, title=f"Volume {n}") for n in range(3)]

        response = client.get("/books")

        assert response.status_code == 200
        assert response.json() == created


class TestValidation:
    @pytest.mark.parametrize(
        ("payload", "message"),
        [
            ({**DUNE, "title": ""}, "Title cannot be empty"),
            ({**DUNE, "author": ""}, "Author cannot be empty"),
            ({**DUNE, "year": 0}, "Year must be a valid positive number"),
            ({**DUNE, "year": -5}, "Year must be a valid positive number"),
            ({"title": "", "author": "", "year": 0}, "Title cannot be empty"),
            ({**DUNE, "year": "1965"}, "Invalid JSON data"),
            ({**DUNE, "title": None}, "Title cannot be empty"),
        ],
    )
    def test_invalid_create_is_rejected(
        self,
        client: TestClient,
        notifier: RecordingNotifier,
        payload: dict,
        message: str,
    ):
        response = client.post("/books", json=payload)

        assert response.status_code == 400
        assert response.json() == {"error": message}
        assert client.get("/books").json() == []
        assert notifier.events == []

    @pytest.mark.parametrize("body", [b"{not json", b"[]", b'"Dune"', b""])
    def test_malformed_body_is_rejected(self, client: TestClient, body: bytes):
        response = client.post(
            "/books", content=body, headers={"Content-Type": "application/json"}
        )

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid JSON data"}

    def test_client_supplied_id_is_ignored(self, client: TestClient):
        created = create(client, id=999)

        assert created["id"] != 999
        assert client.get("/books/999").status_code == 404

    def test_invalid_update_leaves_book_unchanged(self, client: TestClient):
        created = create(client)

        response = client.put(f"/books/{created['id']}", json={**DUNE, "author": ""})

        assert response.status_code == 400
        assert response.json() == {"error": "Author cannot be empty"}
        assert client.get(f"/books/{created['id']}").json() == created

    def test_update_unknown_id_wins_over_bad_body(self, client: TestClient):
        response = client.put(
            "/books/404", content=b"{broken", headers={"Content-Type": "application/json"}
        )

        assert response.status_code == 404
        assert response.json() == {"error": "Book not found"}


class TestNotFound:
    @pytest.mark.parametrize("method", ["get", "put", "delete"])
    @pytest.mark.parametrize(
        "book_id", ["12345", "abc", "-1", "1_0", "99999999999999999999"]
    )
    def test_unknown_ids(
        self,
        client: TestClient,
        notifier: RecordingNotifier,
        method: str,
        book_id: str,
    ):
        kwargs = {"json": DUNE} if method == "put" else {}

        response = getattr(client, method)(f"/books/{book_id}", **kwargs)

        assert response.status_code == 404
        assert response.json() == {"error": "Book not found"}
        assert notifier.events == []


class TestPagination:
    @pytest.fixture
    def twelve_books(self, client: TestClient) -> list[dict]:
        return [create(client, title=f"Volume {n}") for n in range(12)]

    def test_default_page_size(self, client: TestClient, twelve_books: list[dict]):
        assert client.get("/books").json() == twelve_books[:10]

    def test_limit_and_offset(self, client: TestClient, twelve_books: list[dict]):
        response = client.get("/books", params={"limit": 5, "offset": 10})

        assert response.json() == twelve_books[10:]

    @pytest.mark.parametrize(
        "params",
        [
            {"limit": "-1"},
            {"limit": "0"},
            {"limit": "abc"},
            {"offset": "-1"},
            {"offset": "abc"},
            {"limit": "abc", "offset": "-7"},
            {"limit": "1_0"},
            {"offset": "1_0"},
            {"limit": "99999999999999999999"},
            {"offset": "99999999999999999999"},
        ],
    )
    def test_unusable_values_fall_back_to_defaults(
        self, client: TestClient, twelve_books: list[dict], params: dict
    ):
        response = client.get("/books", params=params)

        assert response.status_code == 200
        assert response.json() == twelve_books[:10]

    def test_offset_past_end_is_empty(self, client: TestClient, twelve_books: list[dict]):
        assert client.get("/books", params={"offset": 50}).json() == []


class TestCacheCoherence:
    """Reads after a successful mutation must not be served stale snapshots."""

    def test_list_reflects_create(
        self, client: TestClient, cache_storage: InMemoryCacheStorage
    ):
        assert client.get("/books").json() == []
        assert cache_storage.keys() == ["books:limit=10:offset=0"]

        created = create(client)

        assert client.get("/books").json() == [created]

    def test_reads_reflect_update(
        self, client: TestClient, cache_storage: InMemoryCacheStorage
    ):
        created = create(client)
        client.get(f"/books/{created['id']}")
        client.get("/books", params={"limit": 3})
        assert f"book:{created['id']}" in cache_storage.keys()

        client.put(f"/books/{created['id']}", json={**DUNE, "title": "Dune Messiah"})

        assert client.get(f"/books/{created['id']}").json()["title"] == "Dune Messiah"
        assert client.get("/books", params={"limit": 3}).json()[0]["title"] == "Dune Messiah"

    def test_reads_reflect_delete(
        self, client: TestClient, cache_storage: InMemoryCacheStorage
    ):
        created = create(client)
        client.get(f"/books/{created['id']}")
        client.get("/books")

        client.delete(f"/books/{created['id']}")

        assert cache_storage.keys() == []
        assert client.get(f"/books/{created['id']}").status_code == 404
        assert client.get("/books").json() == []


class TestHealth:
    def test_liveness(self, client: TestClient):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "service": "books-api"}

    def test_readiness(self, client: TestClient):
        response = client.get("/health/ready")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ready"
        assert body["checks"]["database"] == {"status": "healthy"}
        assert body["checks"]["cache"] == {"status": "healthy", "type": "in-memory"}
        assert body["checks"]["notifier"] == {"status": "healthy", "type": "recording"}

    def test_readiness_fails_without_database(
        self, client: TestClient, monkeypatch: pytest.MonkeyPatch
    ):
        deps = client.app.state.app_dependencies
        monkeypatch.setattr(deps.database_service, "health_check", lambda: False)

        response = client.get("/health/ready")

        assert response.status_code == 503
        assert response.json()["status"] == "not_ready"


class TestResponseEnvelope:
    def test_request_id_is_echoed(self, client: TestClient):
        response = client.get("/books", headers={"X-Request-ID": "req-123"})

        assert response.headers["X-Request-ID"] == "req-123"

    def test_request_id_is_generated(self, client: TestClient):
        assert client.get("/health").headers.get("X-Request-ID")

    def test_unexpected_error_is_rendered_as_json(
        self, client: TestClient, monkeypatch: pytest.MonkeyPatch
    ):
        service = client.app.state.app_dependencies.book_service

        async def explode(*args, **kwargs):
            raise RuntimeError("boom")

        monkeypatch.setattr(service, "list_books", explode)

        response = client.get("/books")

        assert response.status_code == 500
        assert response.json() == {"error": "Internal Server Error"}

    def test_shutdown_closes_collaborators(
        self, app_dependencies, test_config, notifier: RecordingNotifier
    ):
        from books_api.api.http.app import create_app

        app = create_app(config=test_config, dependencies=app_dependencies)
        with TestClient(app):
            pass

        assert notifier.closed
        assert app.state.app_dependencies is None
