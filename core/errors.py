"""Error taxonomy for the photo store, cleanup, capture and slideshow."""

from __future__ import annotations


class PhotoStoreError(Exception):
    """Base class for errors raised while working with the photo store."""


class DirectoryPermissionDenied(PhotoStoreError):
    """The store directory exists but cannot be read."""

    def __init__(self, path: str) -> None:
        super().__init__(f"Permission denied for directory: {path}")
        self.path = path


class DirectoryReadFailed(PhotoStoreError):
    """Listing the store directory failed for a reason other than permissions."""

    def __init__(self, path: str, details: str) -> None:
        super().__init__(f"Directory read failed for {path}: {details}")
        self.path = path
        self.details = details


class CorruptOrIncompletePair(PhotoStoreError):
    """A pair file is missing, truncated or cannot be decoded."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"Pair no longer available ({path}): {reason}")
        self.path = path
        self.reason = reason


class CleanupError(PhotoStoreError):
    """Base class for retention/eviction errors."""


class CleanupInProgress(CleanupError):
    """A cleanup run was requested while another one is still running."""

    def __init__(self) -> None:
        super().__init__("A cleanup run is already in progress")


class CleanupPartialFailure(CleanupError):
    """A single file could not be deleted; recorded, never raised by a run."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"Failed to delete {path}: {reason}")
        self.path = path
        self.reason = reason


class NoPairsAvailable(PhotoStoreError):
    """The slideshow was started against a store with no complete pairs."""

    def __init__(self, path: str = "") -> None:
        super().__init__("No photo pairs available for slideshow")
        self.path = path


class CaptureError(Exception):
    """Base class for failures reported into a capture session."""

    category = "generic"


class CaptureTimeout(CaptureError):
    """The camera or the stylization step took too long."""

    category = "timeout"


class StylizationFailure(CaptureError):
    """The remote AI service failed to produce a themed image."""

    category = "ai_service"


class NetworkUnavailable(CaptureError):
    """The network could not be reached while stylizing."""

    category = "network"


class CameraFailure(CaptureError):
    """The camera collaborator failed to deliver a frame."""

    category = "camera"
