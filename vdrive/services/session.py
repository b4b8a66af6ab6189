"""
Drive session wiring.

A session is one independent drive view: a remote client, the navigation
controller over it, and the synchronizer that runs CRUD for that controller.
"""

import logging
from typing import Optional

from vdrive.config import Settings, settings
from vdrive.schemas.address import PathAddress
from vdrive.services.http_remote import HttpRemoteStoreClient
from vdrive.services.navigation import DEFAULT_PAGE_SIZE, NavigationController
from vdrive.services.remote_store import InMemoryRemoteStore, RemoteStoreClient
from vdrive.services.synchronizer import ListingSynchronizer

logger = logging.getLogger(__name__)


def build_remote_client(settings: Settings) -> RemoteStoreClient:
    """Bind to the configured remote, or keep the drive in memory."""
    if settings.remote_url:
        logger.info(f"Using remote drive at {settings.remote_url}")
        return HttpRemoteStoreClient(
            settings.remote_url,
            token=settings.remote_token,
            timeout=settings.remote_timeout,
        )
    logger.info("No remote configured, using in-memory drive")
    return InMemoryRemoteStore()


class DriveSession:
    """Navigation and synchronization sharing one remote client"""

    def __init__(
        self,
        remote: RemoteStoreClient,
        home: PathAddress,
        page_size: int = DEFAULT_PAGE_SIZE,
    ):
        self.home = home
        self.page_size = page_size
        self._bind(remote)

    @classmethod
    def from_settings(cls, settings: Settings) -> "DriveSession":
        return cls(
            build_remote_client(settings),
            settings.home_address(),
            page_size=settings.page_size,
        )

    def _bind(self, remote: RemoteStoreClient):
        self.remote = remote
        self.navigation = NavigationController(remote, self.home, page_size=self.page_size)
        self.synchronizer = ListingSynchronizer(remote, self.navigation)

    def reset(self, remote: Optional[RemoteStoreClient] = None):
        """
        Start over at the home location.

        Args:
            remote: Client to bind instead of the current one
        """
        self._bind(remote if remote is not None else self.remote)

    async def close(self):
        await self.remote.close()


# Global drive session instance
drive_session = DriveSession.from_settings(settings)
