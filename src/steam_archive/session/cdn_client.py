import asyncio
import logging
from typing import List, Optional

from aiohttp import ClientError, ClientSession, ClientTimeout
from yarl import URL

from ..errors import DownloadError

logger = logging.getLogger(__name__)

DIRECTORY_URL = "https://api.steampowered.com/IContentServerDirectoryService/GetServersForSteamPipe/v1/"
MANIFEST_VERSION = 5
DEFAULT_TIMEOUT_SECONDS = 60


class CdnClient:
    """Wrapper for aiohttp.ClientSession that knows how to find Steam content servers and fetch depot manifests from them.
    """
    def __init__(self, session: Optional[ClientSession] = None, timeout: float = DEFAULT_TIMEOUT_SECONDS):
        self._owns_session = session is None
        self._session: ClientSession = session or ClientSession(timeout=ClientTimeout(total=timeout))

    async def close(self):
        if self._owns_session:
            await self._session.close()

    async def _get(self, url: URL) -> bytes:
        try:
            async with self._session.get(url) as response:
                if response.status != 200:
                    raise DownloadError(f"GET {url.path} returned HTTP {response.status}")
                return await response.read()
        except (ClientError, asyncio.TimeoutError) as e:
            raise DownloadError(f"GET {url.path} failed: {e!r}") from e

    async def get_servers(self, cell_id: int = 0) -> List[str]:
        """Base urls of the content servers Steam suggests for `cell_id`, best first."""
        url = URL(DIRECTORY_URL).with_query(cell_id=cell_id)
        try:
            async with self._session.get(url) as response:
                data = await response.json(content_type=None)
        except (ClientError, asyncio.TimeoutError, ValueError) as e:
            raise DownloadError(f"Content server directory unavailable: {e!r}") from e
        try:
            servers = data["response"]["servers"]
        except (KeyError, TypeError):
            logger.exception("Can not parse content server directory response")
            raise DownloadError("Malformed content server directory response")
        hosts = [server for server in servers if server.get("type") in ("CDN", "SteamCache")]
        hosts.sort(key=lambda server: server.get("weighted_load", server.get("load", 0)))
        return [f"{'https' if server.get('https_support') != 'unavailable' else 'http'}://{server['host']}" for server in hosts]

    async def download_manifest(self, server: str, depot_id: int, manifest_id: int, request_code: int) -> bytes:
        url = URL(server) / "depot" / str(depot_id) / "manifest" / str(manifest_id) / str(MANIFEST_VERSION) / str(request_code)
        return await self._get(url)
