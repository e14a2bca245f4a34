from typing import Optional

from .session.enumerations import EResult


class ArchiveError(Exception):
    """Base error for the archiver."""


class ConfigurationError(ArchiveError):
    """Invalid or missing operator configuration. Fatal before any work starts."""


class SteamConnectionError(ArchiveError, ConnectionError):
    """The session could not reach Steam."""


class AuthenticationError(ArchiveError):
    """Steam refused to log the account on. `result` carries the Steam result code."""

    def __init__(self, result: EResult, message: Optional[str] = None):
        super().__init__(message or result.name)
        self.result = result


class DownloadError(ArchiveError):
    """A manifest could not be fetched."""


class StorageError(ArchiveError):
    """The repository transport failed (rejected push, git failure, unreachable remote)."""


class CryptoError(ArchiveError):
    """Malformed key material or corrupted ciphertext."""
