import io
import os

from app import create_app
from services import fileops
from services.pg import PgConsole
from services.settings import Settings


def _create(client, path, kind, content=None):
    body = {"path": path, "type": kind}
    if content is not None:
        body["content"] = content
    return client.post("/api/files", json=body)


def test_index_page(client):
    resp = client.get("/")
    assert resp.status_code == 200
    assert b"Volume Browser" in resp.data


def test_list_root_defaults_to_slash(client):
    resp = client.get("/api/files")
    assert resp.status_code == 200
    assert resp.get_json() == {"path": "/", "items": []}


def test_list_missing_is_404(client):
    resp = client.get("/api/files", query_string={"path": "/missing"})
    assert resp.status_code == 404
    assert resp.get_json() == {"error": "Path not found"}


def test_list_traversal_is_400(client, root):
    resp = client.get("/api/files", query_string={"path": "/../../etc"})
    assert resp.status_code == 400
    body = resp.get_json()
    assert body == {"error": "Path traversal detected"}


def test_list_a_file_is_400(client):
    _create(client, "/a.txt", "file", "x")
    resp = client.get("/api/files", query_string={"path": "/a.txt"})
    assert resp.status_code == 400
    assert "error" in resp.get_json()


def test_create_file_and_preview(client):
    resp = _create(client, "/notes/hello.txt", "file", "hello")
    assert resp.status_code == 200
    assert resp.get_json() == {"ok": True}

    resp = client.get("/api/files/content", query_string={"path": "/notes/hello.txt"})
    assert resp.status_code == 200
    assert resp.get_json() == {"content": "hello", "size": 5}


def test_create_directory_then_delete(client):
    assert _create(client, "/docs", "directory").status_code == 200
    items = client.get("/api/files").get_json()["items"]
    assert [(it["name"], it["isDirectory"]) for it in items] == [("docs", True)]

    resp = client.delete("/api/files", query_string={"path": "/docs"})
    assert resp.status_code == 200
    assert resp.get_json() == {"ok": True}
    assert client.get("/api/files").get_json()["items"] == []


def test_create_validates_body(client):
    resp = client.post("/api/files", json={"path": "/x", "type": "fifo"})
    assert resp.status_code == 400
    resp = client.post("/api/files", json={"type": "file"})
    assert resp.status_code == 400
    assert resp.get_json() == {"error": "path required"}
    resp = client.post("/api/files", data="not json", content_type="text/plain")
    assert resp.status_code == 400
    resp = client.post("/api/files", json={"path": "/x", "type": "file", "content": 5})
    assert resp.status_code == 400


def test_create_with_empty_path_targets_root(client):
    resp = client.post("/api/files", json={"path": "", "type": "directory"})
    assert resp.status_code == 200
    assert resp.get_json() == {"ok": True}


def test_create_traversal_is_400(client, root):
    resp = _create(client, "/../outside.txt", "file", "x")
    assert resp.status_code == 400
    assert not os.path.exists(os.path.join(os.path.dirname(root), "outside.txt"))


def test_delete_requires_path(client):
    resp = client.delete("/api/files")
    assert resp.status_code == 400
    assert resp.get_json() == {"error": "path required"}


def test_delete_missing_is_400(client):
    resp = client.delete("/api/files", query_string={"path": "/ghost"})
    assert resp.status_code == 400
    assert "error" in resp.get_json()


def test_delete_root_is_refused(client, root):
    resp = client.delete("/api/files", query_string={"path": "/"})
    assert resp.status_code == 400
    assert os.path.isdir(root)


def test_download(client):
    _create(client, "/docs/report.txt", "file", "abc")
    resp = client.get("/api/files/download", query_string={"path": "/docs/report.txt"})
    assert resp.status_code == 200
    assert resp.data == b"abc"
    disposition = resp.headers["Content-Disposition"]
    assert disposition.startswith("attachment;")
    assert 'filename="report.txt"' in disposition
    resp.close()


def test_download_non_ascii_name(client):
    _create(client, "/отчёт.txt", "file", "x")
    resp = client.get("/api/files/download", query_string={"path": "/отчёт.txt"})
    assert resp.status_code == 200
    disposition = resp.headers["Content-Disposition"]
    assert "filename*=UTF-8''%D0%BE%D1%82%D1%87%D1%91%D1%82.txt" in disposition
    resp.close()


def test_download_errors(client):
    assert client.get("/api/files/download").status_code == 400
    assert client.get("/api/files/download", query_string={"path": "/none"}).status_code == 404
    _create(client, "/dir", "directory")
    assert client.get("/api/files/download", query_string={"path": "/dir"}).status_code == 400


def test_upload_scenario(client):
    _create(client, "/docs", "directory")
    resp = client.post(
        "/api/files/upload",
        data={"path": "/docs", "file": (io.BytesIO(b"abc"), "report.txt")},
        content_type="multipart/form-data",
    )
    assert resp.status_code == 200
    assert resp.get_json() == {"ok": True}

    items = client.get("/api/files", query_string={"path": "/docs"}).get_json()["items"]
    assert len(items) == 1
    assert {k: items[0][k] for k in ("name", "isDirectory", "size")} == {
        "name": "report.txt",
        "isDirectory": False,
        "size": 3,
    }


def test_upload_without_file(client):
    resp = client.post("/api/files/upload", data={"path": "/"}, content_type="multipart/form-data")
    assert resp.status_code == 400
    assert resp.get_json() == {"error": "No file provided"}


def test_upload_to_missing_directory_is_400(client, root):
    resp = client.post(
        "/api/files/upload",
        data={"path": "/nowhere", "file": (io.BytesIO(b"abc"), "a.txt")},
        content_type="multipart/form-data",
    )
    assert resp.status_code == 400
    assert not os.path.exists(os.path.join(root, "nowhere"))


def test_upload_limit(root):
    app = create_app(Settings(root=root, max_upload_mb=1), console=PgConsole(None))
    client = app.test_client()
    resp = client.post(
        "/api/files/upload",
        data={"file": (io.BytesIO(b"x" * (1024 * 1024 + 1)), "big.bin")},
        content_type="multipart/form-data",
    )
    assert resp.status_code == 413
    assert resp.get_json() == {"error": "Upload too large", "max_mb": 1}


def test_content_errors(client, root):
    assert client.get("/api/files/content").status_code == 400
    resp = client.get("/api/files/content", query_string={"path": "/none.txt"})
    assert resp.status_code == 404
    assert resp.get_json() == {"error": "File not found"}

    with open(os.path.join(root, "big.log"), "wb") as fp:
        fp.truncate(fileops.PREVIEW_MAX_BYTES + 10)
    resp = client.get("/api/files/content", query_string={"path": "/big.log"})
    assert resp.status_code == 413
    assert resp.get_json() == {"error": "File too large to preview", "size": fileops.PREVIEW_MAX_BYTES + 10}


def test_unknown_api_route_is_json(client):
    resp = client.get("/api/nope")
    assert resp.status_code == 404
    assert "error" in resp.get_json()
    resp = client.put("/api/files")
    assert resp.status_code == 405
    assert "error" in resp.get_json()
