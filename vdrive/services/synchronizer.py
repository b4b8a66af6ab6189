"""
CRUD operations against the remote store, reconciled into the local listing.

Each operation has a fixed update policy:
- create (file or folder): wait for the remote, then merge the returned entry
- rename: patch the entry in place; on a name collision or a missing entry,
  re-list the folder before reporting the error
- delete: drop the entry on success, and also when the remote says it is
  already gone

Operations capture the location they were started from. If the user has
navigated elsewhere by the time the remote answers, the answer still counts
remotely but the local listing is left alone.
"""

import logging
from typing import Optional

from vdrive.errors import AlreadyExists, DriveError, InvalidPath, NameCollision, NotFound
from vdrive.schemas.address import PathAddress
from vdrive.schemas.filesystem import (
    Entry,
    FileEntry,
    FolderEntry,
    Listing,
    file_extension,
    is_folder,
)
from vdrive.services.navigation import NavigationController
from vdrive.services.remote_store import RemoteStoreClient

logger = logging.getLogger(__name__)


class ListingSynchronizer:
    """Runs create/rename/delete for one navigation controller"""

    def __init__(self, remote: RemoteStoreClient, navigation: NavigationController):
        self.remote = remote
        self.navigation = navigation

    async def create_file(self, name: str, storage_tag: Optional[str] = None) -> FileEntry:
        """
        Create (or update) a file named ``name`` in the current folder.

        Raises:
            InvalidSegment: for an unusable name, before contacting the remote
            InvalidPath: if the current folder does not exist remotely
        """
        location = self.navigation.location
        target = location.join(name)
        try:
            entry = await self.remote.create_file(target, storage_tag or location.storage_location)
        except InvalidPath as e:
            logger.warning(f"Cannot create file {target}, parent missing: {e.message}")
            raise

        self.navigation.apply_to_listing(location, lambda listing: listing.upsert_file(entry))
        logger.info(f"Created file {entry.full_path} ({entry.id}, version {entry.file_version})")
        return entry

    async def create_folder(self, name: str, storage_tag: Optional[str] = None) -> FolderEntry:
        """
        Create a folder named ``name`` in the current folder.

        Raises:
            InvalidSegment: for an unusable name, before contacting the remote
            AlreadyExists: if the folder is already there
            InvalidPath: if the current folder does not exist remotely
        """
        location = self.navigation.location
        target = location.join(name)
        try:
            entry = await self.remote.create_folder(target, storage_tag or location.storage_location)
        except (AlreadyExists, InvalidPath) as e:
            logger.warning(f"Cannot create folder {target}: {e.code}")
            raise

        self.navigation.apply_to_listing(location, lambda listing: listing.upsert_folder(entry))
        logger.info(f"Created folder {entry.full_path} ({entry.id})")
        return entry

    async def rename(self, entry: Entry, new_name: str) -> Entry:
        """
        Rename an entry, keeping it in the same folder.

        Returns:
            The entry as it now reads locally

        Raises:
            InvalidSegment: for an unusable name, before contacting the remote
            NameCollision, NotFound: after the folder has been re-listed
        """
        location = self.navigation.location
        new_path = entry.full_path.with_name(new_name)
        try:
            await self.remote.rename_entry(entry.id, new_name)
        except (NameCollision, NotFound) as e:
            logger.warning(f"Rename of {entry.full_path} to {new_name!r} rejected: {e.code}")
            await self._recover(location)
            raise

        updates = {"name": new_name, "full_path": new_path}
        if not is_folder(entry):
            updates["extension"] = file_extension(new_name)
        renamed = entry.model_copy(update=updates)

        def _patch(listing: Listing):
            current = listing.find(entry.id)
            if current is not None:
                listing.replace_entry(current.model_copy(update=updates))

        self.navigation.apply_to_listing(location, _patch)
        logger.info(f"Renamed {entry.full_path} -> {new_path}")
        return renamed

    async def delete(self, entry: Entry) -> None:
        """
        Delete an entry. An entry the remote no longer knows counts as deleted.
        """
        location = self.navigation.location
        try:
            await self.remote.delete_entry(entry.id)
        except NotFound:
            logger.info(f"{entry.full_path} ({entry.id}) was already gone remotely")
        else:
            logger.info(f"Deleted {entry.full_path} ({entry.id})")

        self.navigation.apply_to_listing(location, lambda listing: listing.remove(entry.id))

    async def _recover(self, location: PathAddress):
        """Re-list after the remote disagreed with the local listing"""
        if location != self.navigation.location:
            return
        try:
            await self.navigation.refresh()
        except DriveError as e:
            # The controller already holds the failure as its state
            logger.warning(f"Refresh after conflict failed: {e.code}")
