"""HTTP tests for the share pages, the JSON API and login."""

from __future__ import annotations

import json
import re

import pytest

from cloudvault.fs.utils import ROOT_FOLDER


def _page_data(html: str) -> dict:
    match = re.search(r'<script id="file-data" type="application/json">(.*?)</script>', html, re.S)
    assert match, html
    return json.loads(match.group(1))


async def _upload(admin, name: str, body: bytes, folder: str | None = None) -> dict:
    headers = {"X-File-Name": name}
    if folder:
        headers["X-Folder"] = folder
    resp = await admin.post("/api/files/upload", content=body, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()


# ---------------------------------------------------------------------------
# Login
# ---------------------------------------------------------------------------


class TestAuth:
    async def test_api_requires_session(self, client):
        resp = await client.get("/api/files")
        assert resp.status_code == 401
        assert resp.json()["code"] == "unauthorized"

    async def test_login_form(self, client, config):
        resp = await client.post("/auth/login", data={"password": config.admin_password})
        assert resp.status_code == 200
        assert resp.json() == {"message": "ok"}
        assert "session" in resp.cookies

    async def test_login_errors(self, client):
        assert (await client.post("/auth/login", json={})).status_code == 400
        assert (await client.post("/auth/login", json={"password": "x"})).status_code == 401
        resp = await client.post("/auth/login", content=b"pw", headers={"Content-Type": "text/plain"})
        assert resp.status_code == 415

    async def test_logout(self, admin):
        assert (await admin.get("/api/files")).status_code == 200
        resp = await admin.post("/auth/logout")
        assert resp.status_code == 302
        assert (await admin.get("/api/files")).status_code == 401

    async def test_auth_can_be_disabled(self, client, vault):
        vault.config.require_auth = False
        assert (await client.get("/api/files")).status_code == 200


# ---------------------------------------------------------------------------
# Files API
# ---------------------------------------------------------------------------


class TestFilesApi:
    async def test_upload_list_get(self, admin):
        meta = await _upload(admin, "hello%20world.txt", b"hi", folder="docs")
        assert meta["name"] == "hello world.txt"
        assert meta["folder"] == "docs"
        assert "share_password" not in meta

        listing = (await admin.get("/api/files", params={"folder": "docs"})).json()
        assert listing["total_files"] == 1
        assert listing["cursor"] is None
        assert (await admin.get(f"/api/files/{meta['id']}")).json()["size"] == 2

    async def test_default_name(self, admin):
        resp = await admin.post("/api/files/upload", content=b"x")
        assert resp.json()["name"] == "untitled"
        assert resp.json()["folder"] == ROOT_FOLDER

    async def test_search(self, admin):
        await _upload(admin, "Report.PDF", b"x")
        await _upload(admin, "notes.txt", b"x")
        found = (await admin.get("/api/files", params={"search": "report"})).json()
        assert [f["name"] for f in found["files"]] == ["Report.PDF"]

    async def test_rename_delete(self, admin):
        meta = await _upload(admin, "a.txt", b"x")
        renamed = await admin.put(f"/api/files/{meta['id']}", json={"name": "b.txt"})
        assert renamed.json()["key"] == "b.txt"
        assert (await admin.delete(f"/api/files/{meta['id']}")).json() == {"deleted": 1}
        assert (await admin.get(f"/api/files/{meta['id']}")).status_code == 404

    async def test_bulk_delete_and_move(self, admin):
        a = await _upload(admin, "a.txt", b"x")
        b = await _upload(admin, "b.txt", b"x")
        moved = await admin.post("/api/files/move", json={"ids": [a["id"]], "target": "archive"})
        assert moved.json()["moved"] == [a["id"]]
        deleted = await admin.post("/api/files/delete", json={"ids": [a["id"], b["id"]]})
        assert deleted.json() == {"deleted": 2}

    async def test_download(self, admin):
        meta = await _upload(admin, "a.txt", b"content")
        resp = await admin.get(f"/api/files/{meta['id']}/download")
        assert resp.content == b"content"
        assert resp.headers["content-disposition"] == 'attachment; filename="a.txt"'

    async def test_multipart(self, admin):
        created = await admin.post(
            "/api/files/upload",
            params={"action": "mpu-create"},
            headers={"X-File-Name": "big.bin", "X-Folder": "media"},
        )
        upload = created.json()
        assert upload["key"] == "media/big.bin"

        parts = []
        for number, chunk in [(1, b"hello "), (2, b"world")]:
            resp = await admin.put(
                "/api/files/upload",
                params={
                    "action": "mpu-upload",
                    "uploadId": upload["upload_id"],
                    "partNumber": number,
                    "key": upload["key"],
                },
                content=chunk,
            )
            parts.append(resp.json())

        done = await admin.post(
            "/api/files/upload",
            params={"action": "mpu-complete"},
            json={"uploadId": upload["upload_id"], "key": upload["key"], "parts": parts},
        )
        assert done.status_code == 201
        assert done.json()["size"] == 11
        assert (await admin.get(f"/api/files/{done.json()['id']}/download")).content == b"hello world"

    async def test_multipart_missing_params(self, admin):
        resp = await admin.put("/api/files/upload", params={"action": "mpu-upload"}, content=b"x")
        assert resp.status_code == 400

    async def test_stats(self, admin):
        await _upload(admin, "a.txt", b"abc")
        stats = (await admin.get("/api/stats")).json()
        assert stats["total_files"] == 1
        assert stats["total_size"] == 3
        assert stats["top_downloaded"] == []


# ---------------------------------------------------------------------------
# Folders API
# ---------------------------------------------------------------------------


class TestFoldersApi:
    async def test_create_list_rename_delete(self, admin):
        created = await admin.post("/api/folders", json={"name": "b", "parent": "a"})
        assert created.status_code == 201
        assert created.json() == {"folder": "a/b"}

        paths = [f["path"] for f in (await admin.get("/api/folders")).json()["folders"]]
        assert paths == ["a", "a/b"]

        renamed = await admin.put("/api/folders", json={"oldPath": "a", "newPath": "z"})
        assert renamed.json()["new_path"] == "z"

        deleted = await admin.delete("/api/folders", params={"path": "z"})
        assert deleted.json()["deleted_folders"] == 2

    async def test_share_and_exclude(self, admin):
        await admin.post("/api/folders", json={"name": "a"})
        assert (await admin.post("/api/folders/share", json={"path": "a"})).json()["shared"] is True
        assert (await admin.get("/api/folders/shared")).json() == {"folders": ["a"]}
        excluded = await admin.post("/api/folders/exclude", json={"path": "a/b"})
        assert excluded.json() == {"path": "a/b", "excluded": True}

    async def test_root_cannot_be_shared(self, admin):
        resp = await admin.post("/api/folders/share", json={"path": "root"})
        assert resp.status_code == 400
        assert resp.json()["code"] == "invalid_path"

    async def test_traversal_rejected(self, admin):
        resp = await admin.post("/api/folders", json={"name": "x", "parent": "a/.."})
        assert resp.status_code == 400


# ---------------------------------------------------------------------------
# Share pages
# ---------------------------------------------------------------------------


class TestFileSharePage:
    async def test_share_flow(self, admin):
        meta = await _upload(admin, "report.pdf", b"0123456789")
        share = (await admin.post("/api/share", json={"fileId": meta["id"]})).json()
        assert share["url"] == f"/s/{share['token']}"
        assert share["has_password"] is False

        page = await admin.get(share["url"])
        assert page.status_code == 200
        data = _page_data(page.text)
        assert data["name"] == "report.pdf"
        assert data["previewType"] == "pdf"

        download = await admin.get(f"{share['url']}/download")
        assert download.content == b"0123456789"
        assert download.headers["content-disposition"] == 'attachment; filename="report.pdf"'

        preview = await admin.get(f"{share['url']}/preview", headers={"Range": "bytes=2-4"})
        assert preview.status_code == 206
        assert preview.content == b"234"
        assert preview.headers["cache-control"] == "public, max-age=3600"

        info = (await admin.get(f"/api/share/{meta['id']}")).json()
        assert info["downloads"] == 1

    async def test_invalid_token_page(self, client):
        page = await client.get("/s/does-not-exist")
        assert page.status_code == 200
        assert _page_data(page.text)["error"] == "This share link is invalid or has been revoked."
        assert (await client.get("/s/does-not-exist/download")).status_code == 404

    async def test_password_flow(self, admin, client):
        meta = await _upload(admin, "secret.txt", b"s3cret")
        share = (
            await admin.post("/api/share", json={"fileId": meta["id"], "password": "pw"})
        ).json()
        token = share["token"]
        admin.cookies.clear()

        data = _page_data((await client.get(f"/s/{token}")).text)
        assert data["needsPassword"] is True
        assert (await client.get(f"/s/{token}/download")).status_code == 403

        wrong = await client.post(f"/s/{token}/verify", data={"password": "nope"})
        assert wrong.status_code == 401
        bad_type = await client.post(
            f"/s/{token}/verify", content=b"pw", headers={"Content-Type": "text/plain"}
        )
        assert bad_type.status_code == 415

        ok = await client.post(f"/s/{token}/verify", json={"password": "pw"})
        assert ok.status_code == 302
        assert ok.headers["location"] == f"/s/{token}"
        assert (await client.get(f"/s/{token}/download")).content == b"s3cret"

    async def test_verify_without_password_redirects(self, admin):
        meta = await _upload(admin, "open.txt", b"x")
        token = (await admin.post("/api/share", json={"fileId": meta["id"]})).json()["token"]
        resp = await admin.post(f"/s/{token}/verify", content=b"", headers={"Content-Type": "text/plain"})
        assert resp.status_code == 302

    async def test_revoke(self, admin):
        meta = await _upload(admin, "a.txt", b"x")
        token = (await admin.post("/api/share", json={"fileId": meta["id"]})).json()["token"]
        revoked = await admin.delete(f"/api/share/{meta['id']}")
        assert revoked.json() == {"message": "Share revoked"}
        assert (await admin.get(f"/s/{token}/download")).status_code == 404


class TestFolderSharePage:
    @pytest.fixture
    async def link(self, admin):
        await _upload(admin, "a.txt", b"AAA", folder="docs")
        await _upload(admin, "b.txt", b"BBB", folder="docs/sub")
        outside = await _upload(admin, "c.txt", b"CCC", folder="docs-old")
        resp = await admin.post("/api/folder-share-link", json={"path": "docs"})
        assert resp.status_code == 200
        return resp.json(), outside

    async def test_browse(self, admin, link):
        data, _ = link
        page = _page_data((await admin.get(f"/s/{data['token']}")).text)
        assert page["isFolder"] is True
        assert page["folderName"] == "docs"
        assert [f["name"] for f in page["files"]] == ["a.txt"]
        assert page["subfolders"] == ["sub"]

        sub = _page_data((await admin.get(f"/s/{data['token']}", params={"path": "sub"})).text)
        assert [f["name"] for f in sub["files"]] == ["b.txt"]

    async def test_folder_download(self, admin, link):
        data, outside = link
        page = _page_data((await admin.get(f"/s/{data['token']}")).text)
        file_id = page["files"][0]["id"]
        resp = await admin.get(f"/s/{data['token']}/folder-download", params={"fileId": file_id})
        assert resp.content == b"AAA"

        denied = await admin.get(
            f"/s/{data['token']}/folder-download", params={"fileId": outside["id"]}
        )
        assert denied.status_code == 403
        missing = await admin.get(f"/s/{data['token']}/folder-preview")
        assert missing.status_code == 400

    async def test_link_info_and_revoke(self, admin, link):
        data, _ = link
        info = await admin.get("/api/folder-share-link/docs")
        assert info.json()["token"] == data["token"]
        assert (await admin.delete("/api/folder-share-link/docs")).json() == {"revoked": True}
        assert (await admin.get("/api/folder-share-link/docs")).status_code == 404
        assert (await admin.get(f"/s/{data['token']}/folder-preview", params={"fileId": "x"})).status_code == 404


# ---------------------------------------------------------------------------
# Public listing
# ---------------------------------------------------------------------------


class TestPublicApi:
    async def test_public_listing(self, admin, client):
        shared = await _upload(admin, "pub.txt", b"pub", folder="public")
        hidden = await _upload(admin, "priv.txt", b"priv", folder="public/private")
        await admin.post("/api/folders/share", json={"path": "public"})
        await admin.post("/api/folders/exclude", json={"path": "public/private"})
        admin.cookies.clear()

        assert (await client.get("/api/public/shared")).json() == {"folders": ["public"]}
        folder = (await client.get("/api/public/folder", params={"path": "public"})).json()
        assert [f["name"] for f in folder["files"]] == ["pub.txt"]
        assert folder["subfolders"] == []

        assert (await client.get(f"/api/public/download/{shared['id']}")).content == b"pub"
        assert (await client.get(f"/api/public/download/{hidden['id']}")).status_code == 404
        private = await client.get("/api/public/folder", params={"path": "public/private"})
        assert private.status_code == 404
