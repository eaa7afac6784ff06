"""Tests for the toondb HTTP API."""

import json
import pytest
from fastapi.testclient import TestClient
from toondb.api import create_app
from toondb.engine import MemoryEngine
from toondb.errors import ConfigError
from toondb.store import CollectionStore

KEY = "secret"
HEADERS = {"X-API-Key": KEY}
JOHN = "name: John Doe\nrole: developer\nskills[2]: rust,go\n"


@pytest.fixture
def store():
    s = CollectionStore(MemoryEngine())
    yield s
    s.close()


@pytest.fixture
def client(store):
    return TestClient(create_app(store, KEY), headers=HEADERS)


@pytest.fixture
def strict_client(store):
    return TestClient(create_app(store, KEY, strict_toon=True), headers=HEADERS)


class TestAuth:
    def test_missing_key(self, store):
        client = TestClient(create_app(store, KEY))
        resp = client.get("/api/auth")
        assert resp.status_code == 401
        assert resp.json() == {"success": False, "error": "Invalid API key"}

    def test_wrong_key(self, store):
        client = TestClient(create_app(store, KEY))
        resp = client.get("/api/collections", headers={"X-API-Key": "nope"})
        assert resp.status_code == 401

    def test_auth_check(self, client):
        resp = client.get("/api/auth")
        assert resp.status_code == 200
        assert resp.json()["status"] == "success"

    def test_unauthorized_request_changes_nothing(self, store):
        client = TestClient(create_app(store, KEY))
        resp = client.post("/api/users/john", content=JOHN)
        assert resp.status_code == 401
        assert store.list_collections() == {}

    def test_empty_api_key_refused(self, store):
        with pytest.raises(ConfigError):
            create_app(store, "")

    @pytest.mark.parametrize("path", ["/docs", "/redoc", "/openapi.json"])
    def test_schema_pages_not_served(self, store, path):
        client = TestClient(create_app(store, KEY))
        assert client.get(path).status_code == 404


class TestValues:
    def test_post_then_get_verbatim(self, client):
        resp = client.post("/api/users/john", content=JOHN)
        assert resp.status_code == 200
        assert resp.json() == {
            "success": True,
            "data": {
                "collection": "users",
                "key": "john",
                "message": "Data saved successfully",
            },
        }
        resp = client.get("/api/users/john")
        assert resp.status_code == 200
        assert resp.text == JOHN
        assert resp.headers["content-type"].startswith("text/plain")

    def test_get_missing(self, client):
        resp = client.get("/api/users/ghost")
        assert resp.status_code == 404
        assert resp.json()["success"] is False
        assert "users:ghost" in resp.json()["error"]

    def test_lenient_accepts_free_text(self, client):
        resp = client.post("/api/notes/n1", content="just some text\nname: x\n")
        assert resp.status_code == 200
        assert client.get("/api/notes/n1").text == "just some text\nname: x\n"

    def test_strict_rejects_free_text(self, strict_client, store):
        resp = strict_client.post("/api/notes/n1", content="just some text\n")
        assert resp.status_code == 400
        assert "line 1" in resp.json()["error"]
        assert store.list_keys("notes") == []

    def test_invalid_utf8(self, client, store):
        resp = client.post("/api/notes/n1", content=b"name: \xff\xfe")
        assert resp.status_code == 400
        assert store.list_keys("notes") == []

    def test_separator_in_name(self, client):
        resp = client.post("/api/a:b/k", content="v: 1")
        assert resp.status_code == 400
        resp = client.get("/api/users/k:1")
        assert resp.status_code == 400

    def test_reserved_collection(self, client):
        resp = client.post("/api/convert/x", content="v: 1")
        assert resp.status_code == 400
        assert "reserved" in resp.json()["error"]

    def test_delete(self, client):
        client.post("/api/users/john", content=JOHN)
        resp = client.delete("/api/users/john")
        assert resp.status_code == 200
        assert resp.json()["data"]["message"] == "Data deleted successfully"
        assert client.get("/api/users/john").status_code == 404
        assert client.get("/api/collections").json() == {}

    def test_delete_missing_succeeds(self, client):
        assert client.delete("/api/users/ghost").status_code == 200


class TestCollections:
    def test_listing(self, client):
        client.post("/api/users/john", content=JOHN)
        client.post("/api/users/jane", content=JOHN)
        client.post("/api/posts/p1", content="title: hi")
        resp = client.get("/api/collections")
        assert resp.json() == {"posts": ["p1"], "users": ["jane", "john"]}

    def test_keys(self, client):
        client.post("/api/users/john", content=JOHN)
        resp = client.get("/api/collections/users")
        assert resp.json() == {
            "success": True,
            "data": {"collection": "users", "keys": ["john"]},
        }

    def test_keys_unknown_collection(self, client):
        resp = client.get("/api/collections/nothing")
        assert resp.json()["data"]["keys"] == []

    def test_drop(self, client):
        client.post("/api/users/john", content=JOHN)
        client.post("/api/users/jane", content=JOHN)
        resp = client.delete("/api/collections/users")
        assert resp.status_code == 200
        assert resp.json()["data"]["deleted"] == 2
        assert client.get("/api/collections").json() == {}


class TestBackupRestore:
    def test_backup(self, client):
        client.post("/api/users/john", content=JOHN)
        resp = client.get("/api/backup")
        assert resp.status_code == 200
        assert "attachment" in resp.headers["content-disposition"]
        assert "backup.json" in resp.headers["content-disposition"]
        assert resp.json() == [{"collection": "users", "key": "john", "data": JOHN}]

    def test_restore(self, client):
        backup = [
            {"collection": "users", "key": "john", "data": JOHN},
            {"collection": "posts", "key": "p1", "data": "title: hi"},
        ]
        resp = client.post("/api/restore", content=json.dumps(backup))
        assert resp.status_code == 200
        assert resp.json()["data"] == {
            "message": "Backup restored successfully",
            "records": 2,
        }
        assert client.get("/api/users/john").text == JOHN

    def test_restore_invalid_json(self, client):
        resp = client.post("/api/restore", content="{not json")
        assert resp.status_code == 400

    def test_restore_bad_record(self, client, store):
        resp = client.post("/api/restore", content='[{"collection": "users"}]')
        assert resp.status_code == 400
        assert store.list_collections() == {}

    def test_restore_partial(self, client):
        backup = [
            {"collection": "users", "key": "a", "data": "v: 1"},
            {"collection": "bad:name", "key": "b", "data": "v: 2"},
        ]
        resp = client.post("/api/restore", content=json.dumps(backup))
        assert resp.status_code == 500
        assert resp.json()["success"] is False
        assert resp.json()["records"] == 1
        assert client.get("/api/users/a").text == "v: 1"

    def test_backup_then_restore_into_fresh_store(self, client):
        client.post("/api/users/john", content=JOHN)
        client.post("/api/posts/p1", content="title: hi")
        backup = client.get("/api/backup").content

        fresh = CollectionStore(MemoryEngine())
        other = TestClient(create_app(fresh, KEY), headers=HEADERS)
        assert other.post("/api/restore", content=backup).json()["data"]["records"] == 2
        assert fresh.list_collections() == {"posts": ["p1"], "users": ["john"]}


class TestConvert:
    def test_toon_to_json(self, client):
        resp = client.post(
            "/api/convert/toon-to-json",
            content="users[2]{id,name}:\n  1,Ali\n  2,Sara\n",
        )
        assert resp.status_code == 200
        assert resp.json() == {
            "users": [{"id": "1", "name": "Ali"}, {"id": "2", "name": "Sara"}]
        }

    def test_json_to_toon(self, client):
        body = {"users": [{"id": "1", "name": "Ali"}, {"id": "2", "name": "Sara"}]}
        resp = client.post("/api/convert/json-to-toon", content=json.dumps(body))
        assert resp.status_code == 200
        assert resp.text == "users[2]{id,name}:\n  1,Ali\n  2,Sara\n"

    def test_json_to_toon_invalid(self, client):
        resp = client.post("/api/convert/json-to-toon", content="[1, 2]")
        assert resp.status_code == 400

    def test_convert_does_not_store(self, client, store):
        client.post("/api/convert/toon-to-json", content="name: x")
        assert store.list_collections() == {}
