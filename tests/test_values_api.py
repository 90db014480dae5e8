"""Tests for the /api/values HTTP surface."""

from __future__ import annotations

import textwrap

import pytest

pytest.importorskip("httpx", reason="httpx is required for TestClient")

from fastapi.testclient import TestClient

from remotefs.main import create_app


@pytest.fixture()
def storage_root(tmp_path):
    root = tmp_path / "storage"
    root.mkdir()
    return root


@pytest.fixture()
def client(tmp_path, storage_root, monkeypatch):
    """Create a FastAPI test client with a temporary configuration."""

    monkeypatch.delenv("REMOTEFS_ROOT", raising=False)

    config = textwrap.dedent(
        f"""
        server:
          addr: "127.0.0.1"
          port: 18080
        storage:
          root: "{storage_root.as_posix()}"
          create: false
        logging:
          json: false
          file: ""
          level: "INFO"
        """
    )

    config_path = tmp_path / "remotefs.yaml"
    config_path.write_text(config, encoding="utf-8")

    app = create_app(str(config_path))
    with TestClient(app) as client:
        yield client


class TestListing:

    def test_root_listing(self, client, storage_root):
        (storage_root / "a.txt").write_bytes(b"0123456789")
        (storage_root / "b").mkdir()

        response = client.get("/api/values")

        assert response.status_code == 200
        assert response.json() == [
            {"name": "a.txt", "isFile": True, "size": "10.0 bytes"},
            {"name": "b/", "isFile": False},
        ]

    def test_nested_listing(self, client, storage_root):
        (storage_root / "docs" / "2024").mkdir(parents=True)
        (storage_root / "docs" / "2024" / "report.pdf").write_bytes(b"x" * 2048)

        response = client.get("/api/values/docs/2024")

        assert response.status_code == 200
        assert response.json() == [
            {"name": "report.pdf", "isFile": True, "size": "2.0 KB"},
        ]

    def test_missing_directory(self, client):
        response = client.get("/api/values/nope")

        assert response.status_code == 404
        assert response.json()["detail"]["code"] == 404

    def test_traversal_is_not_found(self, client):
        response = client.get("/api/values/docs", params={"file": ".."})

        assert response.status_code == 404


class TestDownload:

    def test_download_from_root(self, client, storage_root):
        (storage_root / "hello.txt").write_bytes(b"hello world")

        response = client.get("/api/values", params={"file": "hello.txt"})

        assert response.status_code == 200
        assert response.content == b"hello world"
        assert response.headers["content-disposition"] == 'attachment; filename="hello.txt"'
        assert response.headers["content-length"] == "11"

    def test_download_nested(self, client, storage_root):
        (storage_root / "docs").mkdir()
        (storage_root / "docs" / "data.bin").write_bytes(b"\x00\x01\x02")

        response = client.get("/api/values/docs", params={"file": "data.bin"})

        assert response.status_code == 200
        assert response.content == b"\x00\x01\x02"
        assert "filename=\"data.bin\"" in response.headers["content-disposition"]

    def test_download_non_ascii_name(self, client, storage_root):
        (storage_root / "résumé.txt").write_text("cv", encoding="utf-8")

        response = client.get("/api/values", params={"file": "résumé.txt"})

        assert response.status_code == 200
        assert "filename*=UTF-8''r%C3%A9sum%C3%A9.txt" in response.headers["content-disposition"]

    def test_download_missing_file(self, client):
        response = client.get("/api/values", params={"file": "missing.txt"})

        assert response.status_code == 404

    def test_download_directory_is_not_found(self, client, storage_root):
        (storage_root / "docs").mkdir()

        response = client.get("/api/values", params={"file": "docs"})

        assert response.status_code == 404


class TestCreate:

    def test_create_nested_directory(self, client, storage_root):
        response = client.post("/api/values/a/b/c")

        assert response.status_code == 201
        assert response.content == b""
        assert (storage_root / "a" / "b" / "c").is_dir()

    def test_create_existing_directory(self, client, storage_root):
        (storage_root / "docs").mkdir()
        (storage_root / "docs" / "keep.txt").write_text("keep")

        response = client.post("/api/values/docs")

        assert response.status_code == 409
        assert (storage_root / "docs" / "keep.txt").read_text() == "keep"

    def test_create_root_conflicts(self, client):
        response = client.post("/api/values")

        assert response.status_code == 409

    def test_create_over_existing_file_conflicts(self, client, storage_root):
        (storage_root / "taken").write_text("file")

        response = client.post("/api/values/taken")

        assert response.status_code == 409
        assert response.json()["detail"]["code"] == 409
        assert (storage_root / "taken").read_text() == "file"


class TestUpload:

    def test_upload_replaces_spaces(self, client, storage_root):
        (storage_root / "docs").mkdir()

        response = client.post(
            "/api/values/docs",
            files={"files": ("my file.txt", b"content", "text/plain")},
        )

        assert response.status_code == 201
        assert response.json() == ["docs/my_file.txt"]
        assert (storage_root / "docs" / "my_file.txt").read_bytes() == b"content"
        assert not (storage_root / "docs" / "my file.txt").exists()

    def test_upload_many_keeps_order(self, client, storage_root):
        (storage_root / "docs").mkdir()

        response = client.post(
            "/api/values/docs",
            files=[
                ("files", ("b.txt", b"b", "text/plain")),
                ("files", ("a.txt", b"a", "text/plain")),
            ],
        )

        assert response.status_code == 201
        assert response.json() == ["docs/b.txt", "docs/a.txt"]

    def test_upload_to_root(self, client, storage_root):
        response = client.post(
            "/api/values",
            files={"files": ("root file.txt", b"root", "text/plain")},
        )

        assert response.status_code == 201
        assert response.json() == ["/root_file.txt"]
        assert (storage_root / "root_file.txt").read_bytes() == b"root"

    def test_upload_drops_client_directories(self, client, storage_root):
        (storage_root / "docs").mkdir()

        response = client.post(
            "/api/values/docs",
            files={"files": ("../../evil.txt", b"evil", "text/plain")},
        )

        assert response.status_code == 201
        assert response.json() == ["docs/evil.txt"]
        assert (storage_root / "docs" / "evil.txt").exists()

    def test_upload_missing_directory(self, client, storage_root):
        response = client.post(
            "/api/values/missing",
            files={"files": ("a.txt", b"a", "text/plain")},
        )

        assert response.status_code == 400
        assert response.json()["detail"]["msg"] == "Directory missing not found."
        assert not (storage_root / "missing").exists()


    def test_upload_under_other_field_saves_nothing(self, client, storage_root):
        response = client.post(
            "/api/values/docs",
            files={"attachment": ("a.txt", b"a", "text/plain")},
        )

        assert response.status_code == 201
        assert response.json() == []
        assert not (storage_root / "docs").exists()
        assert list(storage_root.iterdir()) == []


class TestServerErrors:

    def _error_total(self, client):
        return client.get("/metrics").json()["errors"]["total"]

    def test_io_failure_is_logged_server_error(self, client, storage_root, caplog):
        # Saving onto a directory name fails with IsADirectoryError
        (storage_root / "docs" / "clash").mkdir(parents=True)
        before = self._error_total(client)

        with caplog.at_level("ERROR", logger="remotefs.api"):
            response = client.post(
                "/api/values/docs",
                files={"files": ("clash", b"data", "text/plain")},
            )

        assert response.status_code == 500
        assert response.json()["detail"]["code"] == 500
        assert (storage_root / "docs" / "clash").is_dir()
        assert self._error_total(client) == before + 1
        assert any("Storage operation failed" in r.getMessage() for r in caplog.records)

    def test_unexpected_exception_is_server_error(self, client, monkeypatch):
        async def broken_listing(rel_path):
            raise RuntimeError("listing exploded")

        monkeypatch.setattr(client.app.state.storage, "list_files", broken_listing)
        before = self._error_total(client)

        response = client.get("/api/values")

        assert response.status_code == 500
        assert response.json() == {
            "code": 500,
            "msg": "Internal server error",
            "data": None,
        }
        assert self._error_total(client) == before + 1


class TestDelete:

    def test_delete_root_file(self, client, storage_root):
        (storage_root / "a.txt").write_text("a")

        response = client.delete("/api/values", params={"file": "a.txt"})
        assert response.status_code == 200
        assert not (storage_root / "a.txt").exists()

        response = client.delete("/api/values", params={"file": "a.txt"})
        assert response.status_code == 404

    def test_delete_root_without_file(self, client, storage_root):
        (storage_root / "a.txt").write_text("a")

        response = client.delete("/api/values")

        assert response.status_code == 404
        assert (storage_root / "a.txt").exists()

    def test_delete_nested_file(self, client, storage_root):
        (storage_root / "docs").mkdir()
        (storage_root / "docs" / "a.txt").write_text("a")

        response = client.delete("/api/values/docs", params={"file": "a.txt"})

        assert response.status_code == 200
        assert not (storage_root / "docs" / "a.txt").exists()
        assert (storage_root / "docs").is_dir()

    def test_delete_file_without_directory_segment(self, client, storage_root):
        (storage_root / "a.txt").write_text("a")

        response = client.delete("/api/values/", params={"file": "a.txt"})

        assert response.status_code == 404
        assert (storage_root / "a.txt").exists()
        assert storage_root.is_dir()

    def test_delete_missing_file(self, client, storage_root):
        (storage_root / "docs").mkdir()

        response = client.delete("/api/values/docs", params={"file": "nope.txt"})

        assert response.status_code == 404

    def test_delete_directory_tree(self, client, storage_root):
        (storage_root / "docs" / "nested").mkdir(parents=True)
        (storage_root / "docs" / "nested" / "a.txt").write_text("a")

        response = client.delete("/api/values/docs")

        assert response.status_code == 200
        assert not (storage_root / "docs").exists()

        response = client.delete("/api/values/docs")
        assert response.status_code == 404

    def test_delete_storage_root_refused(self, client, storage_root):
        (storage_root / "a.txt").write_text("a")

        response = client.delete("/api/values/")

        assert response.status_code == 404
        assert (storage_root / "a.txt").exists()


def test_healthz(client):
    response = client.get("/healthz")

    assert response.status_code == 200
    assert response.json()["ok"] is True


def test_metrics_count_requests(client):
    client.get("/api/values")
    response = client.get("/metrics")

    assert response.status_code == 200
    assert response.json()["requests"]["total"] >= 1
