from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Sequence

import pytest
from aiohttp import test_utils, web

from steam_archive.errors import DownloadError
from steam_archive.session import cdn_client
from steam_archive.session.cdn_client import CdnClient
from steam_archive.session.outcomes import AuthSuccess
from steam_archive.session.pics_cdn_session import PicsCdnSession
from steam_archive.session.steam_session import DepotManifestRef

REQUEST_CODE = 42
UNREACHABLE = "http://127.0.0.1:1"

DIRECTORY = {
    "response": {
        "servers": [
            {"type": "CDN", "host": "busy.example", "weighted_load": 90, "https_support": "mandatory"},
            {"type": "SteamCache", "host": "idle.example", "weighted_load": 10, "https_support": "unavailable"},
            {"type": "CS", "host": "legacy.example", "weighted_load": 1},
        ]
    }
}


async def _manifest(request: web.Request) -> web.Response:
    if request.match_info["code"] != str(REQUEST_CODE):
        return web.Response(status=401)
    return web.Response(body=f"depot {request.match_info['depot']} manifest {request.match_info['manifest']}".encode("ascii"))


async def _directory(request: web.Request) -> web.Response:
    return web.json_response(DIRECTORY)


@asynccontextmanager
async def _serve() -> AsyncIterator[str]:
    app = web.Application()
    app.router.add_get("/depot/{depot}/manifest/{manifest}/5/{code}", _manifest)
    app.router.add_get("/directory", _directory)
    server = test_utils.TestServer(app)
    await server.start_server()
    try:
        yield str(server.make_url("")).rstrip("/")
    finally:
        await server.close()


class StaticServerCdn(CdnClient):

    def __init__(self, servers: List[str]) -> None:
        super().__init__()
        self.servers = servers

    async def get_servers(self, cell_id: int = 0) -> List[str]:
        return self.servers


class StaticSession(PicsCdnSession):
    """Two owned apps sharing one depot."""

    async def connect(self) -> None:
        pass

    async def authenticate(self, account):
        return AuthSuccess(account)

    async def disconnect(self) -> None:
        pass

    async def get_owned_app_ids(self) -> Sequence[int]:
        return [440, 450]

    async def get_app_info(self, app_id: int):
        return {"depots": {str(app_id + 1): {"manifests": {"public": {"gid": "10"}}}, "228981": {"manifests": {"public": {"gid": "20"}}}}}

    async def get_manifest_request_code(self, app_id: int, depot_id: int, manifest_id: int) -> int:
        return REQUEST_CODE


@pytest.mark.asyncio
async def test_download_manifest() -> None:
    async with _serve() as base:
        cdn = CdnClient()
        try:
            payload = await cdn.download_manifest(base, 441, 7646143253549018540, REQUEST_CODE)
        finally:
            await cdn.close()

    assert payload == b"depot 441 manifest 7646143253549018540"


@pytest.mark.asyncio
async def test_rejected_request_code_is_a_download_error() -> None:
    async with _serve() as base:
        cdn = CdnClient()
        try:
            with pytest.raises(DownloadError):
                await cdn.download_manifest(base, 441, 1, 7)
        finally:
            await cdn.close()


@pytest.mark.asyncio
async def test_unreachable_server_is_a_download_error() -> None:
    cdn = CdnClient(timeout=5)
    try:
        with pytest.raises(DownloadError):
            await cdn.download_manifest(UNREACHABLE, 441, 1, REQUEST_CODE)
    finally:
        await cdn.close()


@pytest.mark.asyncio
async def test_get_servers_orders_by_load(monkeypatch: pytest.MonkeyPatch) -> None:
    async with _serve() as base:
        monkeypatch.setattr(cdn_client, "DIRECTORY_URL", f"{base}/directory")
        cdn = CdnClient()
        try:
            servers = await cdn.get_servers(cell_id=3)
        finally:
            await cdn.close()

    assert servers == ["http://idle.example", "https://busy.example"]


@pytest.mark.asyncio
async def test_session_lists_shared_depots_once() -> None:
    cdn = StaticServerCdn([])
    try:
        refs = await StaticSession(cdn).list_owned_depot_manifests()
    finally:
        await cdn.close()

    assert refs == [DepotManifestRef(440, 441, 10), DepotManifestRef(440, 228981, 20), DepotManifestRef(450, 451, 10)]


@pytest.mark.asyncio
async def test_session_falls_over_to_the_next_server() -> None:
    async with _serve() as base:
        cdn = StaticServerCdn([UNREACHABLE, base])
        try:
            payload = await StaticSession(cdn).download_manifest(440, 441, 10)
        finally:
            await cdn.close()

    assert payload == b"depot 441 manifest 10"


@pytest.mark.asyncio
async def test_session_gives_up_when_every_server_fails() -> None:
    cdn = StaticServerCdn([UNREACHABLE])
    try:
        with pytest.raises(DownloadError):
            await StaticSession(cdn).download_manifest(440, 441, 10)
    finally:
        await cdn.close()


@pytest.mark.asyncio
async def test_session_without_servers() -> None:
    cdn = StaticServerCdn([])
    try:
        with pytest.raises(DownloadError):
            await StaticSession(cdn).download_manifest(440, 441, 10)
    finally:
        await cdn.close()
