""" appinfo.py

Reads the depot -> manifest mapping out of PICS appinfo. Steam hands appinfo out as Valve KeyValues text, which `vdf` turns into nested dicts.

The part we care about looks like this:
    "appinfo" { "depots" { "<depot id>" { "manifests" { "public" { "gid" "<manifest id>" "size" "..." } } } } }
Older appinfo has the gid directly as the branch value ("public" "<manifest id>"). Both are accepted.
Keys under "depots" that are not numbers ("branches", "baselanguages", ...) are metadata, not depots.
"""
import logging
from typing import Any, Dict, List, Mapping, Optional, Union

import vdf

from .steam_session import DepotManifestRef

logger = logging.getLogger(__name__)

DEFAULT_BRANCH = "public"


def load_appinfo(appinfo: Union[str, Mapping[str, Any]]) -> Mapping[str, Any]:
    if isinstance(appinfo, str):
        appinfo = vdf.loads(appinfo)
    # text appinfo is wrapped in a single "appinfo" section. PICS dicts usually are not.
    if "depots" not in appinfo and len(appinfo) == 1:
        appinfo = next(iter(appinfo.values()))
    return appinfo


def _manifest_gid(manifests: Mapping[str, Any], branch: str) -> Optional[int]:
    entry = manifests.get(branch)
    if entry is None:
        return None
    gid = entry.get("gid") if isinstance(entry, Mapping) else entry
    try:
        return int(gid)
    except (TypeError, ValueError):
        logger.warning("Unparseable manifest gid %r on branch %s", gid, branch)
        return None


def parse_depot_manifests(app_id: int, appinfo: Union[str, Mapping[str, Any]], branch: str = DEFAULT_BRANCH) -> List[DepotManifestRef]:
    depots: Dict[str, Any] = load_appinfo(appinfo).get("depots") or {}
    refs: List[DepotManifestRef] = []
    for depot_id, depot in depots.items():
        if not depot_id.isdigit() or not isinstance(depot, Mapping):
            continue
        manifests = depot.get("manifests")
        if not isinstance(manifests, Mapping):
            continue  # depotfromapp / shared depots carry no manifests of their own.
        manifest_id = _manifest_gid(manifests, branch)
        if manifest_id is not None:
            refs.append(DepotManifestRef(app_id, int(depot_id), manifest_id))
    return refs
