"""Error taxonomy for the virtual drive client."""


class DriveError(Exception):
    """Base class for every error raised by vdrive"""

    code = "DriveError"

    def __init__(self, message: str = ""):
        super().__init__(message or self.code)
        self.message = message or self.code

    def to_dict(self) -> dict:
        return {"error": self.code, "message": self.message}


class MalformedAddress(DriveError, ValueError):
    """Raw address string has no storage location separator"""

    code = "MalformedAddress"


class InvalidSegment(DriveError, ValueError):
    """Path segment is empty or contains a separator"""

    code = "InvalidSegment"


class InvalidPath(DriveError):
    """Parent folder of the target path does not exist"""

    code = "InvalidPath"


class AlreadyExists(DriveError):
    """A folder already exists at the target path"""

    code = "AlreadyExists"


class NameCollision(DriveError):
    """Rename target name is taken in the parent folder"""

    code = "NameCollision"


class NotFound(DriveError):
    """Entry id is unknown to the remote store"""

    code = "NotFound"


class RemoteUnavailable(DriveError):
    """Transport-level failure talking to the remote store"""

    code = "RemoteUnavailable"


ERRORS_BY_CODE = {
    cls.code: cls
    for cls in (
        MalformedAddress,
        InvalidSegment,
        InvalidPath,
        AlreadyExists,
        NameCollision,
        NotFound,
        RemoteUnavailable,
    )
}
