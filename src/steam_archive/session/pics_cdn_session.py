""" pics_cdn_session.py

Half of a SteamSession: everything that does not need the logon protocol. Depots are enumerated from PICS appinfo and manifests are pulled from content servers.
A concrete session subclasses this and provides connect/authenticate/disconnect plus the three lookups below, all of which need a logged on connection.
"""
import logging
from abc import abstractmethod
from typing import Any, List, Mapping, Optional, Sequence, Union

from ..errors import DownloadError
from .appinfo import DEFAULT_BRANCH, parse_depot_manifests
from .cdn_client import CdnClient
from .steam_session import DepotManifestRef, SteamSession

logger = logging.getLogger(__name__)


class PicsCdnSession(SteamSession):

    def __init__(self, cdn: CdnClient, cell_id: int = 0, branch: str = DEFAULT_BRANCH):
        self._cdn = cdn
        self._cell_id = cell_id
        self._branch = branch
        self._servers: Optional[List[str]] = None

    @abstractmethod
    async def get_owned_app_ids(self) -> Sequence[int]:
        pass

    @abstractmethod
    async def get_app_info(self, app_id: int) -> Union[str, Mapping[str, Any]]:
        """PICS appinfo for the app, as KeyValues text or already parsed."""
        pass

    @abstractmethod
    async def get_manifest_request_code(self, app_id: int, depot_id: int, manifest_id: int) -> int:
        pass

    async def list_owned_depot_manifests(self) -> Sequence[DepotManifestRef]:
        refs: List[DepotManifestRef] = []
        seen = set()
        for app_id in await self.get_owned_app_ids():
            for ref in parse_depot_manifests(app_id, await self.get_app_info(app_id), self._branch):
                # depots shared between apps show up once per app. the first app listing one keeps it.
                if (ref.depot_id, ref.manifest_id) not in seen:
                    seen.add((ref.depot_id, ref.manifest_id))
                    refs.append(ref)
        return refs

    async def _content_servers(self) -> List[str]:
        if self._servers is None:
            self._servers = await self._cdn.get_servers(self._cell_id)
            if not self._servers:
                raise DownloadError(f"No content servers for cell {self._cell_id}")
        return self._servers

    async def download_manifest(self, app_id: int, depot_id: int, manifest_id: int) -> bytes:
        request_code = await self.get_manifest_request_code(app_id, depot_id, manifest_id)
        last_error: Optional[DownloadError] = None
        for server in await self._content_servers():
            try:
                return await self._cdn.download_manifest(server, depot_id, manifest_id, request_code)
            except DownloadError as e:
                logger.debug("Manifest %d/%d not available from %s: %s", depot_id, manifest_id, server, e)
                last_error = e
        raise DownloadError(f"Manifest {app_id}/{depot_id}/{manifest_id} unavailable from every content server: {last_error}")
