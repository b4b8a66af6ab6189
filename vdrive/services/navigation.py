"""
Navigation state management for vdrive.

The controller owns the current location of one drive view and the listing
fetched for it. Every listing request is tagged with a freshly minted token;
a response is applied only if its token is still the latest one, so a slow
answer for a folder the user already left can never overwrite the listing of
the folder they are looking at now. Nothing is cancelled: superseded
responses are simply dropped on arrival.
"""

import itertools
import logging
from typing import Callable, List, Optional, Union

from vdrive.errors import DriveError
from vdrive.schemas.address import PathAddress
from vdrive.schemas.filesystem import (
    Listing,
    NavigationState,
    NavigationStatus,
)
from vdrive.services.remote_store import RemoteStoreClient

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 1000


class NavigationController:
    """
    Current location plus its listing, driven through idle/loading/failed.

    This controller:
    - Sets the location immediately on navigation, then lists it
    - Discards listing responses and failures that were superseded
    - Keeps the last successful listing when a fetch fails, reported stale
    - Lets CRUD operations patch the listing only while it is still current
    """

    def __init__(
        self,
        remote: RemoteStoreClient,
        home: PathAddress,
        page_size: int = DEFAULT_PAGE_SIZE,
    ):
        self.remote = remote
        self.page_size = page_size
        self._location = home
        self._status = NavigationStatus.IDLE
        self._listing: Optional[Listing] = None
        self._error: Optional[DriveError] = None
        self._tokens = itertools.count(1)
        self._token = 0

    @property
    def location(self) -> PathAddress:
        return self._location

    @property
    def status(self) -> NavigationStatus:
        return self._status

    @property
    def token(self) -> int:
        return self._token

    @property
    def error(self) -> Optional[DriveError]:
        return self._error

    @property
    def listing(self) -> Optional[Listing]:
        """Last successful listing, which may belong to a previous location"""
        return self._listing

    @property
    def is_stale(self) -> bool:
        return (
            self._status != NavigationStatus.IDLE
            or self._listing is None
            or self._listing.address != self._location
        )

    async def navigate_to(self, address: Union[PathAddress, str]) -> bool:
        """
        Move to a new location and list it.

        Args:
            address: Target address, or raw text to parse

        Returns:
            True if the listing was applied, False if a later navigation
            superseded it

        Raises:
            MalformedAddress: before any state changes, for unparseable text
            DriveError: when the listing fails and this request is still current
        """
        if isinstance(address, str):
            address = PathAddress.parse(address)
        logger.info(f"Navigating {self._location} -> {address}")
        self._location = address
        return await self._load()

    async def refresh(self) -> bool:
        """Re-list the current location under a new token."""
        logger.info(f"Refreshing {self._location}")
        return await self._load()

    def breadcrumbs(self) -> List[PathAddress]:
        return list(self._location.ancestors())

    def apply_to_listing(self, location: PathAddress, mutate: Callable[[Listing], object]) -> bool:
        """
        Apply a listing mutation captured for ``location``.

        Returns:
            False, without mutating, if the user has since navigated away or the
            held listing belongs to another address
        """
        if location != self._location:
            logger.debug(f"Dropping listing update for {location}, now at {self._location}")
            return False
        if self._listing is None or self._listing.address != location:
            logger.debug(f"Dropping listing update for {location}, no listing held for it")
            return False
        mutate(self._listing)
        return True

    def snapshot(self) -> NavigationState:
        # A listing for another address is never shown as this location's listing
        listing = self._listing
        if listing is not None and listing.address != self._location:
            listing = None
        return NavigationState(
            status=self._status,
            location=self._location,
            listing=listing.model_copy(deep=True) if listing is not None else None,
            stale=self.is_stale,
            error=self._error.to_dict() if self._error is not None else None,
            token=self._token,
        )

    async def _load(self) -> bool:
        token = next(self._tokens)
        location = self._location
        self._token = token
        self._status = NavigationStatus.LOADING
        self._error = None

        try:
            listing = await self._fetch(location, token)
        except DriveError as e:
            if token != self._token:
                logger.debug(f"Discarding superseded failure for {location} (token {token}): {e.code}")
                return False
            self._status = NavigationStatus.FAILED
            self._error = e
            logger.warning(f"Listing {location} failed: {e.code}: {e.message}")
            raise

        if listing is None:
            logger.debug(f"Discarding superseded listing for {location} (token {token})")
            return False

        self._listing = listing
        self._status = NavigationStatus.IDLE
        logger.info(f"Listed {location}: {len(listing.folders)} folders, {len(listing.files)} files")
        return True

    async def _fetch(self, location: PathAddress, token: int) -> Optional[Listing]:
        """Page through the remote listing. Returns None once superseded."""
        listing = Listing(address=location)
        after = 0
        while True:
            page = await self.remote.list_folder(location, self.page_size, after)
            if token != self._token:
                return None

            listing.folders.extend(_direct_children(location, page.folders))
            listing.files.extend(_direct_children(location, page.files))

            fetched = len(page.folders) + len(page.files)
            if not page.has_more or fetched == 0:
                return listing
            after += fetched


def _direct_children(location: PathAddress, entries: list) -> list:
    children = []
    for entry in entries:
        if location.is_parent_of(entry.full_path):
            children.append(entry)
        else:
            logger.warning(f"Remote listed {entry.full_path} under {location}; ignoring it")
    return children
