"""
Tests for the HTTP remote store client.
"""

import json

import httpx
import pytest

from vdrive.errors import (
    AlreadyExists,
    DriveError,
    InvalidPath,
    NameCollision,
    NotFound,
    RemoteUnavailable,
)
from vdrive.schemas.address import PathAddress
from vdrive.schemas.filesystem import NavigationStatus
from vdrive.services.http_remote import HttpRemoteStoreClient
from vdrive.services.navigation import NavigationController

HOME = PathAddress.parse("BrowserCache::")


def client_for(handler, token=None) -> HttpRemoteStoreClient:
    return HttpRemoteStoreClient(
        "https://drive.example/api/",
        token=token,
        transport=httpx.MockTransport(handler),
    )


def file_payload(path: str, **extra) -> dict:
    name = path.rsplit("/", 1)[-1].split("::")[-1]
    return {"id": "f1", "name": name, "full_path": path, **extra}


class TestRequests:
    """Tests for what goes over the wire"""

    @pytest.mark.asyncio
    async def test_list_folder_params(self):
        """Test folder paths travel in canonical form with paging params"""
        seen = {}

        def handler(request: httpx.Request):
            seen["url"] = request.url
            return httpx.Response(200, json={
                "folders": [{"id": "d1", "name": "docs", "full_path": "BrowserCache::docs/"}],
                "files": [file_payload("BrowserCache::a.txt")],
                "total": 2,
                "has_more": False,
            })

        client = client_for(handler)
        page = await client.list_folder(HOME, 1000, 0)
        await client.close()

        assert seen["url"].path == "/api/folders"
        assert seen["url"].params["path"] == "BrowserCache::"
        assert seen["url"].params["limit"] == "1000"
        assert seen["url"].params["after"] == "0"
        assert page.folders[0].full_path == HOME.join("docs")
        assert page.files[0].full_path == HOME.join("a.txt")

    @pytest.mark.asyncio
    async def test_create_file_sends_path_without_trailing_slash(self):
        bodies = []

        def handler(request: httpx.Request):
            bodies.append(json.loads(request.content))
            return httpx.Response(201, json=file_payload("BrowserCache::docs/a.txt"))

        async with client_for(handler) as client:
            entry = await client.create_file(PathAddress.parse("BrowserCache::docs/a.txt"), "BrowserCache")

        assert bodies == [{"path": "BrowserCache::docs/a.txt", "storage_location": "BrowserCache"}]
        assert entry.name == "a.txt"

    @pytest.mark.asyncio
    async def test_create_folder_sends_canonical_path(self):
        bodies = []

        def handler(request: httpx.Request):
            bodies.append(json.loads(request.content))
            return httpx.Response(201, json={"id": "d1", "name": "docs", "full_path": "BrowserCache::docs/"})

        async with client_for(handler) as client:
            await client.create_folder(HOME.join("docs"), "BrowserCache")

        assert bodies[0]["path"] == "BrowserCache::docs/"

    @pytest.mark.asyncio
    async def test_rename_and_delete(self):
        """Test rename and delete hit the entry resource and accept empty answers"""
        seen = []

        def handler(request: httpx.Request):
            seen.append((request.method, request.url.path, request.content))
            return httpx.Response(204)

        async with client_for(handler) as client:
            assert await client.rename_entry("e1", "b.txt") is None
            assert await client.delete_entry("e1") is None

        assert seen[0][:2] == ("PATCH", "/api/entries/e1")
        assert json.loads(seen[0][2]) == {"name": "b.txt"}
        assert seen[1][:2] == ("DELETE", "/api/entries/e1")

    @pytest.mark.asyncio
    async def test_bearer_token(self):
        headers = {}

        def handler(request: httpx.Request):
            headers.update(request.headers)
            return httpx.Response(204)

        async with client_for(handler, token="secret") as client:
            await client.delete_entry("e1")

        assert headers["authorization"] == "Bearer secret"

    @pytest.mark.asyncio
    async def test_no_token_no_auth_header(self):
        headers = {}

        def handler(request: httpx.Request):
            headers.update(request.headers)
            return httpx.Response(204)

        async with client_for(handler) as client:
            await client.delete_entry("e1")

        assert "authorization" not in headers


class TestErrors:
    """Tests for mapping remote answers to drive errors"""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status,code,expected", [
        (409, "AlreadyExists", AlreadyExists),
        (409, "NameCollision", NameCollision),
        (404, "NotFound", NotFound),
        (400, "InvalidPath", InvalidPath),
    ])
    async def test_error_codes(self, status, code, expected):
        """Test an error body is raised as the matching class"""

        def handler(request: httpx.Request):
            return httpx.Response(status, json={"error": code, "message": "nope"})

        async with client_for(handler) as client:
            with pytest.raises(expected) as exc_info:
                await client.rename_entry("e1", "x")

        assert exc_info.value.message == "nope"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status,expected", [
        (404, NotFound),
        (400, InvalidPath),
        (418, DriveError),
    ])
    async def test_unknown_error_body_falls_back_on_status(self, status, expected):
        def handler(request: httpx.Request):
            return httpx.Response(status, text="not json")

        async with client_for(handler) as client:
            with pytest.raises(expected):
                await client.delete_entry("e1")

    @pytest.mark.asyncio
    async def test_server_error_is_unavailable(self):
        def handler(request: httpx.Request):
            return httpx.Response(502, json={"error": "NotFound"})

        async with client_for(handler) as client:
            with pytest.raises(RemoteUnavailable):
                await client.list_folder(HOME, 10, 0)

    @pytest.mark.asyncio
    async def test_transport_error_is_unavailable(self):
        """Test a dropped connection surfaces as RemoteUnavailable"""

        def handler(request: httpx.Request):
            raise httpx.ConnectError("connection refused", request=request)

        async with client_for(handler) as client:
            with pytest.raises(RemoteUnavailable):
                await client.list_folder(HOME, 10, 0)

    @pytest.mark.asyncio
    async def test_timeout_is_unavailable(self):
        def handler(request: httpx.Request):
            raise httpx.ReadTimeout("too slow", request=request)

        async with client_for(handler) as client:
            with pytest.raises(RemoteUnavailable):
                await client.delete_entry("e1")

    @pytest.mark.asyncio
    async def test_invalid_json_is_unavailable(self):
        def handler(request: httpx.Request):
            return httpx.Response(200, text="<html>")

        async with client_for(handler) as client:
            with pytest.raises(RemoteUnavailable):
                await client.list_folder(HOME, 10, 0)

    @pytest.mark.asyncio
    async def test_unexpected_payload_is_unavailable(self):
        def handler(request: httpx.Request):
            return httpx.Response(200, json={"folders": [{"name": "no id or path"}]})

        async with client_for(handler) as client:
            with pytest.raises(RemoteUnavailable):
                await client.list_folder(HOME, 10, 0)

    @pytest.mark.asyncio
    async def test_non_utf8_body_is_unavailable(self):
        """Test a body that is not UTF-8 surfaces as RemoteUnavailable"""
        def handler(request: httpx.Request):
            return httpx.Response(200, content=b'{"folders": "\xff"}')

        async with client_for(handler) as client:
            with pytest.raises(RemoteUnavailable):
                await client.list_folder(HOME, 10, 0)

    @pytest.mark.asyncio
    async def test_non_utf8_error_body_falls_back_on_status(self):
        def handler(request: httpx.Request):
            return httpx.Response(404, content=b"\xff\xfe")

        async with client_for(handler) as client:
            with pytest.raises(NotFound):
                await client.delete_entry("e1")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error_cls", [httpx.TooManyRedirects, httpx.DecodingError])
    async def test_request_errors_are_unavailable(self, error_cls):
        """Test request errors outside the transport layer are mapped too"""
        def handler(request: httpx.Request):
            raise error_cls("broken", request=request)

        async with client_for(handler) as client:
            with pytest.raises(RemoteUnavailable):
                await client.list_folder(HOME, 10, 0)

    @pytest.mark.asyncio
    async def test_redirect_is_unavailable(self):
        def handler(request: httpx.Request):
            return httpx.Response(302, headers={"Location": "/elsewhere"})

        async with client_for(handler) as client:
            with pytest.raises(RemoteUnavailable):
                await client.list_folder(HOME, 10, 0)


class TestNavigationOverHttp:
    """Tests for navigation state when the HTTP remote misbehaves"""

    @pytest.mark.asyncio
    async def test_undecodable_listing_fails_navigation(self):
        """Test an unreadable listing leaves the controller failed, not loading"""
        def handler(request: httpx.Request):
            return httpx.Response(200, content=b'{"folders": "\xff"}')

        async with client_for(handler) as client:
            controller = NavigationController(client, HOME)
            with pytest.raises(RemoteUnavailable):
                await controller.refresh()

        assert controller.status == NavigationStatus.FAILED
        assert controller.snapshot().error["error"] == "RemoteUnavailable"
