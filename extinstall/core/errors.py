"""Exceptions raised inside the install workflow.

The install handler translates each of these into an ``InstallOutcome``;
none of them is allowed to escape a request.
"""


class ExtInstallError(Exception):
    """Base class for install workflow failures."""


class DownloadError(ExtInstallError):
    """Raised when the package cannot be fetched (network, HTTP status, size, timeout)."""


class PackageError(DownloadError):
    """Raised when the downloaded file is not a usable archive."""


class InstallError(ExtInstallError):
    """Raised when unpacking or placing the package fails."""


class ActivationError(ExtInstallError):
    """Raised when the host refuses to activate an installed extension."""


class HostError(ExtInstallError):
    """Raised by a host implementation when its own state cannot be read or written."""
