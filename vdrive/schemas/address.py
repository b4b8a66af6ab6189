"""
Path addressing for the virtual drive.

Every location in the drive is written as

    <storage-location>::<segment>/<segment>/.../

The storage location names a namespace root (a browser cache, a hard drive,
a cloud bucket), and the segments walk down the folder tree. ``PathAddress`` is
the only way addresses are built in vdrive: parse it from text, join a segment
onto it, or take one of its ancestors. Nothing else concatenates path strings.
"""

from typing import Iterator, Optional, Tuple

from pydantic import BaseModel, ConfigDict, field_validator, model_serializer, model_validator

from vdrive.errors import InvalidSegment, MalformedAddress

LOCATION_SEPARATOR = "::"
SEGMENT_SEPARATOR = "/"


def check_segment(name: str) -> str:
    """
    Validate a single path segment.

    Raises:
        InvalidSegment: if the name is empty or contains a separator
    """
    if not name:
        raise InvalidSegment("Path segment must not be empty")
    if SEGMENT_SEPARATOR in name:
        raise InvalidSegment(f"Path segment must not contain '/': {name!r}")
    return name


def split_address(raw: str) -> Tuple[str, Tuple[str, ...]]:
    """
    Split a raw address into its storage location and normalized segments.

    Empty components are dropped, so duplicate, leading and trailing
    separators all collapse.

    Raises:
        MalformedAddress: if there is no ``::`` in the string
    """
    if not isinstance(raw, str) or LOCATION_SEPARATOR not in raw:
        raise MalformedAddress(f"Address has no '{LOCATION_SEPARATOR}' separator: {raw!r}")
    storage_location, rest = raw.split(LOCATION_SEPARATOR, 1)
    segments = tuple(part for part in rest.split(SEGMENT_SEPARATOR) if part)
    return storage_location, segments


class PathAddress(BaseModel):
    """A storage location plus an ordered tuple of folder segments"""

    model_config = ConfigDict(frozen=True)

    storage_location: str
    segments: Tuple[str, ...] = ()

    @model_validator(mode="before")
    @classmethod
    def _accept_string(cls, data):
        # Payloads carry addresses in their rendered form
        if isinstance(data, str):
            storage_location, segments = split_address(data)
            return {"storage_location": storage_location, "segments": segments}
        return data

    @field_validator("storage_location")
    @classmethod
    def _check_storage_location(cls, value: str) -> str:
        if LOCATION_SEPARATOR in value:
            raise MalformedAddress(f"Storage location must not contain '{LOCATION_SEPARATOR}'")
        return value

    @field_validator("segments")
    @classmethod
    def _check_segments(cls, value: Tuple[str, ...]) -> Tuple[str, ...]:
        for segment in value:
            check_segment(segment)
        return value

    @model_serializer
    def _serialize(self) -> str:
        return self.render()

    @classmethod
    def parse(cls, raw: str) -> "PathAddress":
        """Parse and normalize a raw address string."""
        storage_location, segments = split_address(raw)
        return cls(storage_location=storage_location, segments=segments)

    @classmethod
    def root(cls, storage_location: str) -> "PathAddress":
        return cls(storage_location=storage_location)

    def render(self, trailing_slash: bool = True) -> str:
        """
        Render the canonical string form.

        Args:
            trailing_slash: drop it for file paths, which the remote store
                keeps without one

        Returns:
            ``Location::a/b/`` for non-root addresses, ``Location::`` at root
        """
        if not self.segments:
            return f"{self.storage_location}{LOCATION_SEPARATOR}"
        body = SEGMENT_SEPARATOR.join(self.segments)
        suffix = SEGMENT_SEPARATOR if trailing_slash else ""
        return f"{self.storage_location}{LOCATION_SEPARATOR}{body}{suffix}"

    def join(self, name: str) -> "PathAddress":
        """Append ``name`` as a new last segment."""
        check_segment(name)
        return PathAddress(
            storage_location=self.storage_location,
            segments=self.segments + (name,),
        )

    def is_root(self) -> bool:
        return not self.segments

    @property
    def name(self) -> str:
        """Last segment, or an empty string at root"""
        return self.segments[-1] if self.segments else ""

    @property
    def parent(self) -> Optional["PathAddress"]:
        if not self.segments:
            return None
        return PathAddress(storage_location=self.storage_location, segments=self.segments[:-1])

    def with_name(self, new_name: str) -> "PathAddress":
        """Replace the last segment, keeping the parent."""
        if not self.segments:
            raise InvalidSegment("Root address has no name to replace")
        return self.parent.join(new_name)

    def is_parent_of(self, other: "PathAddress") -> bool:
        return other.parent == self

    def is_prefix_of(self, other: "PathAddress") -> bool:
        """True if ``other`` is this address or lies beneath it."""
        depth = len(self.segments)
        return (
            other.storage_location == self.storage_location
            and other.segments[:depth] == self.segments
        )

    def rebase(self, old_prefix: "PathAddress", new_prefix: "PathAddress") -> "PathAddress":
        """Move this address from under ``old_prefix`` to under ``new_prefix``."""
        if not old_prefix.is_prefix_of(self):
            raise InvalidSegment(f"{old_prefix} is not a prefix of {self}")
        tail = self.segments[len(old_prefix.segments):]
        return PathAddress(
            storage_location=new_prefix.storage_location,
            segments=new_prefix.segments + tail,
        )

    def ancestors(self) -> "AncestorTrail":
        """Root first, then each successive prefix, ending at this address."""
        return AncestorTrail(self)

    def __str__(self) -> str:
        return self.render()

    def __repr__(self) -> str:
        return f"PathAddress({self.render()!r})"


class AncestorTrail:
    """
    Lazy, restartable sequence of the prefixes of an address.

    Each iteration starts over from the root, so the same trail can be walked
    by several breadcrumb renderers.
    """

    def __init__(self, address: PathAddress):
        self._address = address

    def __iter__(self) -> Iterator[PathAddress]:
        segments = self._address.segments
        for depth in range(len(segments) + 1):
            yield PathAddress(
                storage_location=self._address.storage_location,
                segments=segments[:depth],
            )

    def __len__(self) -> int:
        return len(self._address.segments) + 1
