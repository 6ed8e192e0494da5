"""End-to-end tests for the WebDAV surface mounted at /dav/."""

from __future__ import annotations

import asyncio
from xml.etree import ElementTree as ET

import httpx
import pytest

D = "{DAV:}"


@pytest.fixture
async def dav(client: httpx.AsyncClient, dav_auth: httpx.BasicAuth) -> httpx.AsyncClient:
    client.auth = dav_auth
    return client


def _hrefs(resp: httpx.Response) -> list[str]:
    root = ET.fromstring(resp.content)
    return [r.findtext(f"{D}href") for r in root.findall(f"{D}response")]


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


class TestAuth:
    async def test_requires_credentials(self, client):
        resp = await client.request("PROPFIND", "/dav/")
        assert resp.status_code == 401
        assert resp.headers["www-authenticate"].startswith("Basic")

    async def test_wrong_password(self, client):
        resp = await client.request("PROPFIND", "/dav/", auth=httpx.BasicAuth("u", "bad"))
        assert resp.status_code == 401

    async def test_session_cookie_accepted(self, admin):
        resp = await admin.request("PROPFIND", "/dav/")
        assert resp.status_code == 207

    async def test_options_is_open(self, client):
        resp = await client.options("/dav/")
        assert resp.status_code == 204
        assert resp.headers["dav"] == "1"
        assert "PROPFIND" in resp.headers["allow"]
        assert resp.headers["ms-author-via"] == "DAV"


# ---------------------------------------------------------------------------
# Methods
# ---------------------------------------------------------------------------


class TestPutGet:
    async def test_round_trip(self, dav):
        body = bytes(range(256)) * 4
        put = await dav.put("/dav/docs/data.bin", content=body)
        assert put.status_code == 201

        get = await dav.get("/dav/docs/data.bin")
        assert get.status_code == 200
        assert get.content == body
        assert get.headers["content-length"] == str(len(body))

        head = await dav.head("/dav/docs/data.bin")
        assert head.status_code == 200
        assert head.headers["etag"] == get.headers["etag"]
        assert head.headers["content-length"] == str(len(body))

    async def test_overwrite_returns_204(self, dav, vault):
        await dav.put("/dav/a.txt", content=b"one")
        resp = await dav.put("/dav/a.txt", content=b"three")
        assert resp.status_code == 204
        assert (await dav.get("/dav/a.txt")).content == b"three"
        assert await vault.stats.get_counters() == (1, 5)

    async def test_put_root_and_collection(self, dav):
        assert (await dav.put("/dav/", content=b"x")).status_code == 405
        await dav.request("MKCOL", "/dav/folder")
        assert (await dav.put("/dav/folder", content=b"x")).status_code == 405

    async def test_get_missing(self, dav):
        assert (await dav.get("/dav/nope.txt")).status_code == 404
        assert (await dav.head("/dav/nope.txt")).status_code == 404

    async def test_unicode_path(self, dav):
        resp = await dav.put("/dav/f%C3%BCr/%C3%BCber%20uns.txt", content=b"hi")
        assert resp.status_code == 201
        listing = await dav.request("PROPFIND", "/dav/f%C3%BCr/", headers={"Depth": "1"})
        assert "/dav/f%C3%BCr/%C3%BCber%20uns.txt" in _hrefs(listing)

    async def test_if_none_match(self, dav):
        await dav.put("/dav/a.txt", content=b"x")
        etag = (await dav.head("/dav/a.txt")).headers["etag"]
        resp = await dav.get("/dav/a.txt", headers={"If-None-Match": etag})
        assert resp.status_code == 304


class TestRange:
    async def test_partial(self, dav):
        await dav.put("/dav/r.bin", content=bytes(range(100)))
        resp = await dav.get("/dav/r.bin", headers={"Range": "bytes=10-19"})
        assert resp.status_code == 206
        assert resp.headers["content-range"] == "bytes 10-19/100"
        assert resp.content == bytes(range(10, 20))

    async def test_unsatisfiable(self, dav):
        await dav.put("/dav/r.bin", content=bytes(range(100)))
        resp = await dav.get("/dav/r.bin", headers={"Range": "bytes=200-"})
        assert resp.status_code == 416
        assert resp.headers["content-range"] == "bytes */100"

    async def test_chunk_larger_than_file(self, dav):
        await dav.put("/dav/small.bin", content=bytes(range(100)))
        resp = await dav.get("/dav/small.bin", headers={"Range": "bytes=0-65535"})
        assert resp.status_code == 206
        assert resp.headers["content-range"] == "bytes 0-99/100"
        assert resp.headers["content-length"] == "100"
        assert resp.content == bytes(range(100))


class TestCollections:
    async def test_get_collection(self, dav):
        await dav.put("/dav/docs/a.txt", content=b"x")
        plain = await dav.get("/dav/docs/")
        assert plain.status_code == 200
        assert plain.content == b""
        html = await dav.get("/dav/docs/", headers={"Accept": "text/html"})
        assert "a.txt" in html.text
        head = await dav.head("/dav/docs")
        assert head.headers["content-type"] == "httpd/unix-directory"

    async def test_propfind_depth(self, dav):
        await dav.put("/dav/docs/a.txt", content=b"x")
        await dav.request("MKCOL", "/dav/docs/sub")
        one = await dav.request("PROPFIND", "/dav/docs/", headers={"Depth": "1"})
        assert one.status_code == 207
        assert _hrefs(one) == ["/dav/docs/", "/dav/docs/a.txt", "/dav/docs/sub/"]
        zero = await dav.request("PROPFIND", "/dav/docs", headers={"Depth": "0"})
        assert _hrefs(zero) == ["/dav/docs/"]

    async def test_propfind_root_and_file(self, dav):
        assert _hrefs(await dav.request("PROPFIND", "/dav")) == ["/dav/"]
        await dav.put("/dav/a.txt", content=b"x")
        file = await dav.request("PROPFIND", "/dav/a.txt", headers={"Depth": "1"})
        assert _hrefs(file) == ["/dav/a.txt"]
        assert (await dav.request("PROPFIND", "/dav/missing")).status_code == 404

    async def test_mkcol(self, dav):
        assert (await dav.request("MKCOL", "/dav/new")).status_code == 201
        assert (await dav.request("MKCOL", "/dav/new")).status_code == 405
        assert (await dav.request("MKCOL", "/dav/a/b")).status_code == 409
        assert (await dav.request("MKCOL", "/dav/x", content=b"body")).status_code == 415
        assert (await dav.request("MKCOL", "/dav/")).status_code == 405
        await dav.put("/dav/f.txt", content=b"x")
        assert (await dav.request("MKCOL", "/dav/f.txt")).status_code == 409

    async def test_concurrent_mkcol_single_record(self, dav, registry):
        results = await asyncio.gather(
            dav.request("MKCOL", "/dav/race"), dav.request("MKCOL", "/dav/race")
        )
        assert {r.status_code for r in results} <= {201, 405}
        assert await registry.list_folder_records() == {"race"}

    async def test_delete(self, dav, registry):
        await dav.put("/dav/docs/a.txt", content=b"x")
        await dav.put("/dav/docs/sub/b.txt", content=b"y")
        assert (await dav.delete("/dav/docs/a.txt")).status_code == 204
        assert (await dav.delete("/dav/docs")).status_code == 204
        assert await registry.list_files() == []
        assert (await dav.delete("/dav/docs")).status_code == 404
        assert (await dav.delete("/dav/")).status_code == 403


class TestMoveCopy:
    async def test_move(self, dav, registry):
        await dav.put("/dav/a.txt", content=b"x")
        original = (await registry.list_files())[0]
        resp = await dav.request(
            "MOVE", "/dav/a.txt", headers={"Destination": "http://testserver/dav/dir/b.txt"}
        )
        assert resp.status_code == 201
        moved = await registry.get_file(original.id)
        assert moved.key == "dir/b.txt"
        assert (await dav.get("/dav/a.txt")).status_code == 404

    async def test_copy(self, dav, registry):
        await dav.put("/dav/a.txt", content=b"x")
        resp = await dav.request("COPY", "/dav/a.txt", headers={"Destination": "/dav/c.txt"})
        assert resp.status_code == 201
        ids = {f.id for f in await registry.list_files()}
        assert len(ids) == 2
        assert (await dav.get("/dav/c.txt")).content == b"x"

    async def test_overwrite(self, dav, registry):
        await dav.put("/dav/a.txt", content=b"new")
        await dav.put("/dav/b.txt", content=b"old")
        refused = await dav.request(
            "MOVE", "/dav/a.txt", headers={"Destination": "/dav/b.txt", "Overwrite": "F"}
        )
        assert refused.status_code == 412
        assert "Destination exists" in refused.text
        replaced = await dav.request("MOVE", "/dav/a.txt", headers={"Destination": "/dav/b.txt"})
        assert replaced.status_code == 204
        assert (await dav.get("/dav/b.txt")).content == b"new"
        assert len(await registry.list_files()) == 1

    async def test_errors(self, dav):
        await dav.put("/dav/a.txt", content=b"x")
        outside = await dav.request("MOVE", "/dav/a.txt", headers={"Destination": "/api/x"})
        assert outside.status_code == 400
        same = await dav.request("COPY", "/dav/a.txt", headers={"Destination": "/dav/a.txt"})
        assert same.status_code == 403
        missing = await dav.request("MOVE", "/dav/none.txt", headers={"Destination": "/dav/z"})
        assert missing.status_code == 404

    async def test_root_segment_rejected(self, dav, registry):
        assert (await dav.put("/dav/root/x.txt", content=b"x")).status_code == 400
        assert (await dav.request("PROPFIND", "/dav/root")).status_code == 400
        assert (await dav.request("MKCOL", "/dav/root")).status_code == 400
        await dav.put("/dav/a.txt", content=b"x")
        moved = await dav.request(
            "MOVE", "/dav/a.txt", headers={"Destination": "/dav/root/a.txt"}
        )
        assert moved.status_code == 400
        assert [f.key for f in await registry.list_files()] == ["a.txt"]
        assert (await dav.put("/dav/rootfiles/y.txt", content=b"y")).status_code == 201

    async def test_unsupported_method(self, dav):
        resp = await dav.request("LOCK", "/dav/a.txt")
        assert resp.status_code == 405
        assert "MKCOL" in resp.headers["allow"]
