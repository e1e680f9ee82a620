from __future__ import annotations

import httpx

from nexus.services.uploads import UPLOAD_PATH, FileUploadClient, UploadFile


def _client(handler) -> FileUploadClient:
    return FileUploadClient("http://files.local/", transport=httpx.MockTransport(handler))


def test_upload_posts_multipart_and_returns_url() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"success": True, "fileUrl": "http://files.local/u/a.txt"})

    url = _client(handler).upload(UploadFile("a.txt", b"hello", "text/plain"))
    assert url == "http://files.local/u/a.txt"
    assert seen[0].url.path == UPLOAD_PATH
    assert seen[0].headers["content-type"].startswith("multipart/form-data")
    body = seen[0].read()
    assert b'name="file"' in body and b'filename="a.txt"' in body


def test_upload_failures_return_none() -> None:
    assert _client(lambda r: httpx.Response(503)).upload(UploadFile("a", b"x")) is None
    assert _client(lambda r: httpx.Response(200, json={"success": False})).upload(UploadFile("a", b"x")) is None

    def unreachable(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("down", request=request)

    assert _client(unreachable).upload(UploadFile("a", b"x")) is None


def test_upload_all_keeps_going_past_failures() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if b"bad.bin" in request.read():
            return httpx.Response(500)
        return httpx.Response(200, json={"success": True, "fileUrl": "http://files.local/ok"})

    out = _client(handler).upload_all([UploadFile("bad.bin", b"1"), UploadFile("ok.png", b"2", "image/png")])
    assert out == [{"name": "ok.png", "url": "http://files.local/ok", "type": "image/png"}]
