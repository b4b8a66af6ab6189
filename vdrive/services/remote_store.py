"""
Remote store contract and the in-memory store behind the browser cache.

``RemoteStoreClient`` is the only network-facing seam of vdrive. Navigation and
listing synchronization talk to the store exclusively through it, so a session
can be bound to the in-memory store below or to ``HttpRemoteStoreClient``
without either side noticing.
"""

import logging
import time
import uuid
from abc import ABC, abstractmethod
from typing import Dict, Optional

from vdrive.errors import AlreadyExists, InvalidPath, NameCollision, NotFound
from vdrive.schemas.address import PathAddress, check_segment
from vdrive.schemas.filesystem import (
    FileEntry,
    FolderEntry,
    ListFolderResult,
    file_extension,
)

logger = logging.getLogger(__name__)


class RemoteStoreClient(ABC):
    """
    Operations vdrive issues against a remote store.

    Every call may raise ``RemoteUnavailable`` on transport failure, in
    addition to the domain errors listed per method.
    """

    @abstractmethod
    async def list_folder(self, address: PathAddress, limit: int, after: int) -> ListFolderResult:
        """
        List the direct children of a folder.

        Args:
            address: Folder to list
            limit: Maximum number of entries in the page
            after: Number of entries to skip, folders first, then files

        Returns:
            One page of folders and files whose parent is exactly ``address``
        """

    @abstractmethod
    async def create_file(self, path: PathAddress, storage_tag: str) -> FileEntry:
        """
        Create a file, or update and return the one already at ``path``.

        Raises:
            InvalidPath: if the parent folder does not exist
        """

    @abstractmethod
    async def create_folder(self, path: PathAddress, storage_tag: str) -> FolderEntry:
        """
        Raises:
            AlreadyExists: if a folder is already at ``path``
            InvalidPath: if the parent folder does not exist
        """

    @abstractmethod
    async def rename_entry(self, entry_id: str, new_name: str) -> None:
        """
        Raises:
            NameCollision: if the new name is taken in the parent folder
            NotFound: if the id is unknown
        """

    @abstractmethod
    async def delete_entry(self, entry_id: str) -> None:
        """
        Raises:
            NotFound: if the id is unknown or already deleted
        """

    async def close(self):
        """Release transport resources"""

    async def __aenter__(self) -> "RemoteStoreClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


def _now_ms() -> int:
    return int(time.time() * 1000)


class InMemoryRemoteStore(RemoteStoreClient):
    """
    Remote store kept in process memory.

    Folders and files are indexed by id and by full path. Every storage
    location gets a root folder on first use. Deleted folders stay in the id
    index marked ``deleted`` so they can be told apart from unknown ids, but
    drop out of the path index and of listings.
    """

    def __init__(self):
        self.folders: Dict[str, FolderEntry] = {}
        self.files: Dict[str, FileEntry] = {}
        self.folder_paths: Dict[PathAddress, str] = {}
        self.file_paths: Dict[PathAddress, str] = {}

    async def list_folder(self, address: PathAddress, limit: int, after: int) -> ListFolderResult:
        folder = self._folder_at(address)
        if folder is None:
            return ListFolderResult()

        folders = [
            self.folders[child_id].model_copy(deep=True)
            for child_id in folder.child_folder_ids
            if not self.folders[child_id].deleted
        ]
        files = [self.files[file_id].model_copy(deep=True) for file_id in folder.file_ids]

        start = after
        end = min(after + limit, len(folders) + len(files))
        page_folders = folders[start:end]
        page_files = files[max(start - len(folders), 0):max(end - len(folders), 0)]

        return ListFolderResult(
            folders=page_folders,
            files=page_files,
            total=len(page_folders) + len(page_files),
            has_more=end < len(folders) + len(files),
        )

    async def create_file(self, path: PathAddress, storage_tag: str) -> FileEntry:
        parent = self._writable_parent(path, storage_tag)

        existing_id = self.file_paths.get(path)
        if existing_id is not None:
            existing = self.files[existing_id]
            updated = existing.model_copy(update={
                "file_version": existing.file_version + 1,
                "storage_location": storage_tag,
                "last_changed_ms": _now_ms(),
            })
            self.files[existing_id] = updated
            logger.debug(f"Updated file {path} to version {updated.file_version}")
            return updated.model_copy(deep=True)

        entry = FileEntry(
            id=uuid.uuid4().hex,
            name=path.name,
            full_path=path,
            storage_location=storage_tag,
            folder_id=parent.id,
            extension=file_extension(path.name),
            last_changed_ms=_now_ms(),
        )
        self.files[entry.id] = entry
        self.file_paths[path] = entry.id
        parent.file_ids.append(entry.id)
        logger.debug(f"Created file {path} ({entry.id})")
        return entry.model_copy(deep=True)

    async def create_folder(self, path: PathAddress, storage_tag: str) -> FolderEntry:
        if path.is_root():
            self._check_storage_tag(path, storage_tag)
            return self._ensure_root(path.storage_location).model_copy(deep=True)

        parent = self._writable_parent(path, storage_tag)
        if path in self.folder_paths:
            raise AlreadyExists(f"Folder already exists: {path}")

        entry = FolderEntry(
            id=uuid.uuid4().hex,
            name=path.name,
            full_path=path,
            parent_folder_id=parent.id,
            storage_location=storage_tag,
            last_changed_ms=_now_ms(),
        )
        self.folders[entry.id] = entry
        self.folder_paths[path] = entry.id
        parent.child_folder_ids.append(entry.id)
        logger.debug(f"Created folder {path} ({entry.id})")
        return entry.model_copy(deep=True)

    async def rename_entry(self, entry_id: str, new_name: str) -> None:
        check_segment(new_name)
        folder = self.folders.get(entry_id)
        if folder is not None and not folder.deleted:
            self._rename_folder(folder, new_name)
            return
        file = self.files.get(entry_id)
        if file is not None:
            self._rename_file(file, new_name)
            return
        raise NotFound(f"No entry with id {entry_id}")

    async def delete_entry(self, entry_id: str) -> None:
        folder = self.folders.get(entry_id)
        if folder is not None and not folder.deleted:
            if folder.full_path.is_root():
                raise InvalidPath(f"Cannot delete storage root {folder.full_path}")
            self._delete_folder(folder)
            return
        if entry_id in self.files:
            self._delete_file(entry_id)
            return
        raise NotFound(f"No entry with id {entry_id}")

    def _folder_at(self, address: PathAddress) -> Optional[FolderEntry]:
        folder_id = self.folder_paths.get(address)
        return self.folders[folder_id] if folder_id is not None else None

    def _ensure_root(self, storage_location: str) -> FolderEntry:
        root_path = PathAddress.root(storage_location)
        root = self._folder_at(root_path)
        if root is None:
            root = FolderEntry(
                id=uuid.uuid4().hex,
                name="",
                full_path=root_path,
                storage_location=storage_location,
                last_changed_ms=_now_ms(),
            )
            self.folders[root.id] = root
            self.folder_paths[root_path] = root.id
        return root

    @staticmethod
    def _check_storage_tag(path: PathAddress, storage_tag: str):
        if path.storage_location != storage_tag:
            raise InvalidPath(f"Storage location mismatch: {storage_tag} for {path}")

    def _writable_parent(self, path: PathAddress, storage_tag: str) -> FolderEntry:
        if path.is_root():
            raise InvalidPath(f"{path} is a storage root")
        self._check_storage_tag(path, storage_tag)
        if path.parent.is_root():
            return self._ensure_root(path.storage_location)
        parent = self._folder_at(path.parent)
        if parent is None:
            raise InvalidPath(f"Parent folder not found: {path.parent}")
        return parent

    def _rename_folder(self, folder: FolderEntry, new_name: str):
        if folder.full_path.is_root():
            raise InvalidPath(f"Cannot rename storage root {folder.full_path}")
        old_path = folder.full_path
        new_path = old_path.with_name(new_name)
        if new_path == old_path:
            return
        if new_path in self.folder_paths:
            raise NameCollision(f"A folder named {new_name!r} already exists in {old_path.parent}")

        self._move_folder(folder.id, old_path, new_path)
        self.folders[folder.id] = self.folders[folder.id].model_copy(update={"name": new_name})
        logger.debug(f"Renamed folder {old_path} -> {new_path}")

    def _move_folder(self, folder_id: str, old_prefix: PathAddress, new_prefix: PathAddress):
        folder = self.folders[folder_id]
        new_path = folder.full_path.rebase(old_prefix, new_prefix)
        if not folder.deleted:
            del self.folder_paths[folder.full_path]
            self.folder_paths[new_path] = folder_id
        self.folders[folder_id] = folder.model_copy(update={
            "full_path": new_path,
            "last_changed_ms": _now_ms(),
        })

        for file_id in folder.file_ids:
            file = self.files[file_id]
            file_path = file.full_path.rebase(old_prefix, new_prefix)
            del self.file_paths[file.full_path]
            self.file_paths[file_path] = file_id
            self.files[file_id] = file.model_copy(update={"full_path": file_path})

        for child_id in folder.child_folder_ids:
            self._move_folder(child_id, old_prefix, new_prefix)

    def _rename_file(self, file: FileEntry, new_name: str):
        old_path = file.full_path
        new_path = old_path.with_name(new_name)
        if new_path == old_path:
            return
        if new_path in self.file_paths:
            raise NameCollision(f"A file named {new_name!r} already exists in {old_path.parent}")

        del self.file_paths[old_path]
        self.file_paths[new_path] = file.id
        self.files[file.id] = file.model_copy(update={
            "name": new_name,
            "full_path": new_path,
            "extension": file_extension(new_name),
            "last_changed_ms": _now_ms(),
        })
        logger.debug(f"Renamed file {old_path} -> {new_path}")

    def _delete_folder(self, folder: FolderEntry):
        for child_id in folder.child_folder_ids:
            child = self.folders[child_id]
            if not child.deleted:
                self._delete_folder(child)
        for file_id in list(folder.file_ids):
            self._delete_file(file_id)

        del self.folder_paths[folder.full_path]
        self.folders[folder.id] = self.folders[folder.id].model_copy(update={
            "deleted": True,
            "last_changed_ms": _now_ms(),
        })
        logger.debug(f"Deleted folder {folder.full_path}")

    def _delete_file(self, file_id: str):
        file = self.files.pop(file_id)
        del self.file_paths[file.full_path]
        parent = self.folders.get(file.folder_id)
        if parent is not None and file_id in parent.file_ids:
            parent.file_ids.remove(file_id)
        logger.debug(f"Deleted file {file.full_path}")
