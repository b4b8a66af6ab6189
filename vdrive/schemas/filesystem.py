from datetime import datetime, timezone
from enum import Enum
from pydantic import BaseModel, Field
from typing import Annotated, Literal, Optional, Union

from vdrive.schemas.address import PathAddress

# Default storage location. The set of locations is open.
BROWSER_CACHE = "BrowserCache"


def _now() -> datetime:
    return datetime.now(timezone.utc)


class FolderEntry(BaseModel):
    """Folder known to the remote store"""
    kind: Literal["folder"] = "folder"
    id: str
    name: str
    full_path: PathAddress
    child_folder_ids: list[str] = Field(default_factory=list)
    file_ids: list[str] = Field(default_factory=list)
    parent_folder_id: Optional[str] = None
    storage_location: str = BROWSER_CACHE
    tags: list[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_now)
    last_changed_ms: int = 0
    deleted: bool = False


class FileEntry(BaseModel):
    """File known to the remote store"""
    kind: Literal["file"] = "file"
    id: str
    name: str
    full_path: PathAddress
    storage_location: str = BROWSER_CACHE
    folder_id: Optional[str] = None
    file_version: int = 1
    extension: str = ""
    size: int = 0
    raw_url: str = ""
    tags: list[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_now)
    last_changed_ms: int = 0
    deleted: bool = False


Entry = Union[FolderEntry, FileEntry]
TaggedEntry = Annotated[Entry, Field(discriminator="kind")]


def file_extension(name: str) -> str:
    """Text after the last dot, or the whole name when there is none"""
    return name.rsplit(".", 1)[-1]


def is_folder(entry: Entry) -> bool:
    return isinstance(entry, FolderEntry)


class ListFolderResult(BaseModel):
    """One page of a remote folder listing"""
    folders: list[FolderEntry] = Field(default_factory=list)
    files: list[FileEntry] = Field(default_factory=list)
    total: int = 0
    has_more: bool = False


class Listing(BaseModel):
    """
    Folders and files of exactly one address at a point in time.

    Entries are keyed by id. Mutations replace whole entries so that
    concurrent operations settle as last writer wins per id.
    """
    address: PathAddress
    folders: list[FolderEntry] = Field(default_factory=list)
    files: list[FileEntry] = Field(default_factory=list)
    fetched_at: datetime = Field(default_factory=_now)

    def __len__(self) -> int:
        return len(self.folders) + len(self.files)

    def find(self, entry_id: str) -> Optional[Entry]:
        for entry in self._entries():
            if entry.id == entry_id:
                return entry
        return None

    def upsert_file(self, entry: FileEntry) -> None:
        """Insert a file, replacing one with the same id or, failing that, the same path."""
        self.files = _upsert(self.files, entry)

    def upsert_folder(self, entry: FolderEntry) -> None:
        self.folders = _upsert(self.folders, entry)

    def replace_entry(self, entry: Entry) -> bool:
        """Swap in a new version of an entry already present. Returns False if absent."""
        if self.find(entry.id) is None:
            return False
        if is_folder(entry):
            self.upsert_folder(entry)
        else:
            self.upsert_file(entry)
        return True

    def remove(self, entry_id: str) -> bool:
        """Drop an entry by id. Returns False if it was not listed."""
        before = len(self)
        self.folders = [f for f in self.folders if f.id != entry_id]
        self.files = [f for f in self.files if f.id != entry_id]
        return len(self) != before

    def _entries(self):
        yield from self.folders
        yield from self.files


class NavigationStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    FAILED = "failed"


class NavigationState(BaseModel):
    """Serializable view of one navigation controller"""
    status: NavigationStatus
    location: PathAddress
    listing: Optional[Listing] = None
    stale: bool = False
    error: Optional[dict] = None
    token: int = 0


def _upsert(entries: list, entry: Entry) -> list:
    if any(e.id == entry.id for e in entries):
        return [entry if e.id == entry.id else e for e in entries]
    # The remote may re-key an entry; paths are unique within one folder
    if any(e.full_path == entry.full_path for e in entries):
        return [entry if e.full_path == entry.full_path else e for e in entries]
    return entries + [entry]
