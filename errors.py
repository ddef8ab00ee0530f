"""
errors.py
=========
Error taxonomy for the provisioning pipeline.

Discovery never raises for "nothing found" (see ``LocateResult`` in
java_locators.py). Everything here aborts the current operation and
carries the diagnostic trail gathered up to that point.
"""

from __future__ import annotations

from typing import Iterable, List, Optional


class ProvisionerError(Exception):
    """Base error; ``log_output`` holds the diagnostic trail."""

    code: str = "UNKNOWN"

    def __init__(self, message: str, log_output: Optional[Iterable[str]] = None) -> None:
        super().__init__(message)
        self.log_output: List[str] = list(log_output or [])


class NetworkUnavailable(ProvisionerError):
    """Offline without a usable cache, or the host could not be reached."""

    code = "NETWORK_UNAVAILABLE"


class DownloadFailed(ProvisionerError):
    """The server answered, but the transfer did not succeed."""

    code = "DOWNLOAD_FAILED"


class CatalogError(ProvisionerError):
    code = "CATALOG_ERROR"


class CatalogParseError(CatalogError):
    """Response envelope or cached JSON could not be parsed."""

    code = "PARSE_FAILURE"


class EmptyCatalog(CatalogError):
    code = "EMPTY_CATALOG"


class ChecksumMismatch(ProvisionerError):
    """Archive digest differs from the published checksum."""

    code = "CORRUPT"

    def __init__(
        self,
        message: str,
        algorithm: str = "",
        expected: str = "",
        actual: str = "",
        log_output: Optional[Iterable[str]] = None,
    ) -> None:
        super().__init__(message, log_output)
        self.algorithm = algorithm
        self.expected = expected
        self.actual = actual


class ExtractionError(ProvisionerError):
    code = "EXTRACTION_ERROR"


class PathTraversal(ExtractionError):
    """An archive entry would land outside the extraction target."""

    code = "PATH_TRAVERSAL"


class IncompleteExtraction(ExtractionError):
    code = "INCOMPLETE_EXTRACTION"


class UnsupportedArchive(ExtractionError):
    code = "UNSUPPORTED_ARCHIVE"


class ProvisionFailed(ProvisionerError):
    code = "PROVISION_FAILED"


# Errors that must reach the caller as-is instead of being folded into
# ProvisionFailed.
SECURITY_ERRORS = (PathTraversal, ChecksumMismatch)


__all__ = [
    "ProvisionerError",
    "NetworkUnavailable",
    "DownloadFailed",
    "CatalogError",
    "CatalogParseError",
    "EmptyCatalog",
    "ChecksumMismatch",
    "ExtractionError",
    "PathTraversal",
    "IncompleteExtraction",
    "UnsupportedArchive",
    "ProvisionFailed",
    "SECURITY_ERRORS",
]
