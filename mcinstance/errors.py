"""Error types raised by the provisioning and launch steps.

Every error carries a human-readable message; callers only ever need
``str(error)``. The subclasses exist so that the CLI and the tests can tell
the failure kinds apart.
"""
from typing import List, Optional


class LauncherError(Exception):
    """Base class for every failure surfaced by mcinstance."""


class NetworkFailure(LauncherError):
    """A request could not be sent, or it timed out."""


class HttpStatusFailure(LauncherError):
    """The server answered with a non-2xx status."""

    def __init__(self, message: str, status: int, url: str):
        super().__init__(message)
        self.status = status
        self.url = url


class ParseFailure(LauncherError):
    """A JSON document was malformed or missing a required field."""


class VersionNotFound(LauncherError):
    """The requested version id is not listed in the manifest."""

    def __init__(self, version_id: str, message: Optional[str] = None):
        super().__init__(message or f"Version {version_id} not found")
        self.version_id = version_id


class FilesystemFailure(LauncherError):
    """A file or directory could not be created, read or written."""


class InstallerFailed(LauncherError):
    """The mod-loader installer exited with a non-zero code."""

    def __init__(self, message: str, returncode: Optional[int] = None):
        super().__init__(message)
        self.returncode = returncode


class PartialDownloadFailure(LauncherError):
    """Some asset objects could not be downloaded after all retries."""

    def __init__(self, message: str, failures: List[str], downloaded: int = 0):
        super().__init__(message)
        self.failures = failures
        self.downloaded = downloaded
