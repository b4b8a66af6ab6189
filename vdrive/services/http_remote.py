"""
Remote store client over HTTP.

Speaks JSON to a remote drive endpoint. Folder paths travel in canonical form
(``Location::a/b/``), file paths without the trailing slash. Domain errors come
back as ``{"error": <code>, "message": <text>}`` and are raised as the matching
``vdrive.errors`` class. Nothing is retried here.
"""

import logging
from typing import Any, Optional

import httpx
from pydantic import BaseModel, ValidationError

from vdrive.errors import ERRORS_BY_CODE, DriveError, InvalidPath, NotFound, RemoteUnavailable
from vdrive.schemas.address import PathAddress
from vdrive.schemas.filesystem import FileEntry, FolderEntry, ListFolderResult
from vdrive.services.remote_store import RemoteStoreClient

logger = logging.getLogger(__name__)


class HttpRemoteStoreClient(RemoteStoreClient):
    """RemoteStoreClient bound to an already-reachable HTTP endpoint"""

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._token = token
        self._timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client. No token means an anonymous session."""
        if self._client is None:
            headers = {"Accept": "application/json"}
            if self._token:
                headers["Authorization"] = f"Bearer {self._token}"
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=headers,
                timeout=httpx.Timeout(self._timeout),
                transport=self._transport,
            )
        return self._client

    async def close(self):
        if self._client:
            await self._client.aclose()
            self._client = None

    async def list_folder(self, address: PathAddress, limit: int, after: int) -> ListFolderResult:
        data = await self._request(
            "GET", "/folders",
            params={"path": address.render(), "limit": limit, "after": after},
        )
        return _parse(ListFolderResult, data)

    async def create_file(self, path: PathAddress, storage_tag: str) -> FileEntry:
        data = await self._request(
            "POST", "/files",
            json={"path": path.render(trailing_slash=False), "storage_location": storage_tag},
        )
        return _parse(FileEntry, data)

    async def create_folder(self, path: PathAddress, storage_tag: str) -> FolderEntry:
        data = await self._request(
            "POST", "/folders",
            json={"path": path.render(), "storage_location": storage_tag},
        )
        return _parse(FolderEntry, data)

    async def rename_entry(self, entry_id: str, new_name: str) -> None:
        await self._request("PATCH", f"/entries/{entry_id}", json={"name": new_name})

    async def delete_entry(self, entry_id: str) -> None:
        await self._request("DELETE", f"/entries/{entry_id}")

    async def _request(self, method: str, url: str, **kwargs) -> Any:
        try:
            response = await self.client.request(method, url, **kwargs)
        except httpx.TimeoutException as err:
            raise RemoteUnavailable(f"{method} {url} timed out") from err
        except httpx.RequestError as err:
            raise RemoteUnavailable(f"{method} {url} failed: {err}") from err
        return self._handle_response(response)

    @staticmethod
    def _handle_response(response: httpx.Response) -> Any:
        """Translate the remote's answer into data or a domain error"""
        if response.status_code >= 500:
            raise RemoteUnavailable(f"Server error: {response.status_code}")

        if 300 <= response.status_code < 400:
            raise RemoteUnavailable(f"Unexpected redirect from remote: {response.status_code}")

        if response.status_code >= 400:
            try:
                error_data = response.json()
            except ValueError:
                error_data = {}
            if not isinstance(error_data, dict):
                error_data = {}
            error_cls = ERRORS_BY_CODE.get(error_data.get("error"))
            message = error_data.get("message") or f"Remote error: {response.status_code}"
            if error_cls is None:
                error_cls = _fallback_error(response.status_code)
            logger.debug(f"Remote answered {response.status_code}: {error_cls.code} {message}")
            raise error_cls(message)

        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as err:
            # Covers bodies that are not JSON and bodies that are not UTF-8
            raise RemoteUnavailable("Invalid response format from remote") from err


def _parse(model: type, data: Any) -> BaseModel:
    try:
        return model.model_validate(data)
    except ValidationError as err:
        raise RemoteUnavailable(f"Unexpected {model.__name__} payload from remote") from err


def _fallback_error(status_code: int) -> type:
    if status_code == 404:
        return NotFound
    if status_code == 400:
        return InvalidPath
    return DriveError
