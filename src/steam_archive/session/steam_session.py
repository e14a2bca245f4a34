from abc import ABC, abstractmethod
from typing import NamedTuple, Sequence

from ..storage.records import AccountRecord, ManifestKey
from .outcomes import AuthOutcome


class DepotManifestRef(NamedTuple):
    app_id: int
    depot_id: int
    manifest_id: int

    @property
    def key(self) -> ManifestKey:
        return ManifestKey(self.app_id, self.depot_id, self.manifest_id)


class SteamSession(ABC):
    """One logged on Steam connection for one account. Supplied from outside the archiver.

    connect may raise SteamConnectionError. authenticate reports its result as an AuthOutcome, but may also raise AuthenticationError, which the scheduler classifies the same way.
    download_manifest may raise DownloadError. disconnect must be safe to call after any failure, including a failed connect.
    """

    @abstractmethod
    async def connect(self):
        pass

    @abstractmethod
    async def authenticate(self, account: AccountRecord) -> AuthOutcome:
        pass

    @abstractmethod
    async def list_owned_depot_manifests(self) -> Sequence[DepotManifestRef]:
        pass

    @abstractmethod
    async def download_manifest(self, app_id: int, depot_id: int, manifest_id: int) -> bytes:
        pass

    @abstractmethod
    async def disconnect(self):
        pass
