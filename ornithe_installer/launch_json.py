"""Builds launch profiles: the vanilla profile of a game version, the loader profile
from the metadata service, and the reduced ``net.minecraft`` patch MultiMC wants.
"""
import asyncio
import copy
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Tuple, Union

from . import ORNITHE_META_URL
from .endpoint import loader_profile_endpoint
from .enums import GameSide, LauncherType, LoaderType
from .errors import MalformedDocumentError, expect_type, require
from .manifest import Version, VersionDetails
from .merge import merge_manifest
from .meta import MetaClient
from .rules import inject_jvm_arguments, rewrite_libraries, strip_libraries

log = logging.getLogger(__name__)

MINECRAFT_UID = "net.minecraft"
LAUNCHWRAPPER_MARKER = "launchwrapper"
# not every manifest has javaVersion and even the betas run on 8
COMPATIBLE_JAVA_MAJORS = [8]


@dataclass
class BundleFiles:
    """Documents the MultiMC packager needs for one version/loader combination."""

    vanilla: Dict[str, Any]
    minecraft_patch: Dict[str, Any]
    loader_profile: Dict[str, Any]


async def resolve_details(version: Version) -> VersionDetails:
    """``Version.details()`` without blocking the event loop."""
    if version.details_resolved:
        return version.details()
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, version.details)


async def get_vanilla(client: MetaClient, version: Version) -> Dict[str, Any]:
    """Returns the launch json for a vanilla instance of ``version``.

    The version's own document is completed with each of its manifest fragments,
    merged in the order the details list them.
    """
    details = await resolve_details(version)
    log.info(f"Fetching vanilla launch json for {version.id} ({len(details.manifests)} manifest fragments)")

    version_json, *fragments = await asyncio.gather(
        client.fetch_json(version.url),
        *(client.fetch_json(url) for url in details.manifests),
    )
    require(version_json, "id", str, f"Version json of {version.id}")

    conflicts: List[str] = []
    for url, fragment in zip(details.manifests, fragments):
        expect_type(fragment, dict, url, "Manifest fragment")
        merge_manifest(version_json, fragment, conflicts)
    if conflicts:
        log.warning(f"{len(conflicts)} manifest fragment value(s) for {version.id} differ from the version json "
                    f"and were ignored: {', '.join(conflicts)}")

    version_json["id"] = f"{version.id}-vanilla"
    return version_json


async def get_loader(
    client: MetaClient,
    side: GameSide,
    version: Version,
    loader_type: LoaderType,
    loader_version: str,
    generation: int,
    base_url: str = ORNITHE_META_URL,
) -> Dict[str, Any]:
    """Returns the launch json for a modded instance.

    The loader profile from the metadata service is copied, then library rewrites
    and JVM argument injections are applied to the copy.
    """
    await resolve_details(version)
    endpoint = loader_profile_endpoint(client.registry, side, loader_type, version.id_for(side),
                                       loader_version, generation)
    meta = await client.resolve(base_url, [endpoint])
    # the resolved value is shared with every other user of this endpoint
    profile = copy.deepcopy(meta.get(endpoint))

    rewritten = rewrite_libraries(profile)
    added = inject_jvm_arguments(profile, loader_type, loader_version)
    log.info(f"Loader profile for {loader_type.loader_name} {loader_version}: "
             f"{rewritten} librar{'y' if rewritten == 1 else 'ies'} rewritten, {len(added)} JVM argument(s) added")
    return profile


def flatten_game_arguments(arguments: Dict[str, Any]) -> str:
    """Space joined string game arguments; conditional (object) arguments are dropped."""
    game = arguments.get("game") or []
    return " ".join(arg for arg in game if isinstance(arg, str)).strip()


def get_mmc_json(vanilla: Dict[str, Any], version: Version) -> Dict[str, Any]:
    """Reduced ``net.minecraft`` patch for a MultiMC instance.

    ``${lwjgl_version}`` and ``${lwjgl_uid}`` are left in ``requires`` for the
    packager to fill in.
    """
    libraries = strip_libraries(require(vanilla, "libraries", list, "Vanilla launch json"))
    downloads = require(vanilla, "downloads", dict, "Vanilla launch json")
    client_download = require(downloads, "client", dict, "Vanilla downloads")
    main_class = require(vanilla, "mainClass", str, "Vanilla launch json")

    if isinstance(vanilla.get("minecraftArguments"), str):
        minecraft_arguments = vanilla["minecraftArguments"]
    elif isinstance(vanilla.get("arguments"), dict):
        minecraft_arguments = flatten_game_arguments(vanilla["arguments"])
    else:
        minecraft_arguments = None

    mmc: Dict[str, Any] = {}
    if LAUNCHWRAPPER_MARKER in main_class:
        mmc["+traits"] = ["texturepacks"]
    if "assetIndex" in vanilla:
        mmc["assetIndex"] = vanilla["assetIndex"]
    mmc["compatibleJavaMajors"] = list(COMPATIBLE_JAVA_MAJORS)
    mmc["formatVersion"] = 1
    mmc["libraries"] = libraries
    mmc["mainClass"] = main_class
    mmc["mainJar"] = {
        "downloads": {"artifact": client_download},
        "name": f"com.mojang:minecraft:{version.id}:client",
    }
    if minecraft_arguments is not None:
        mmc["minecraftArguments"] = minecraft_arguments
    mmc["name"] = "Minecraft"
    if "releaseTime" in vanilla:
        mmc["releaseTime"] = vanilla["releaseTime"]
    mmc["requires"] = [{"suggests": "${lwjgl_version}", "uid": "${lwjgl_uid}"}]
    if "type" in vanilla:
        mmc["type"] = vanilla["type"]
    mmc["uid"] = MINECRAFT_UID
    mmc["version"] = version.id
    return mmc


async def synthesize(
    client: MetaClient,
    version: Version,
    loader_type: LoaderType,
    loader_version: str,
    launcher: LauncherType,
    generation: int,
    side: GameSide = GameSide.CLIENT,
    base_url: str = ORNITHE_META_URL,
) -> Union[Tuple[Dict[str, Any], Dict[str, Any]], BundleFiles]:
    """Builds the documents for ``launcher``.

    Returns ``(vanilla, loader_profile)`` for the official launcher and a
    ``BundleFiles`` for MultiMC. Either profile lacking an ``id`` is an error.
    """
    vanilla, loader_profile = await asyncio.gather(
        get_vanilla(client, version),
        get_loader(client, side, version, loader_type, loader_version, generation, base_url),
    )

    for name, document in (("vanilla", vanilla), ("loader", loader_profile)):
        if not isinstance(document.get("id"), str):
            raise MalformedDocumentError(f"The {name} launch json is missing the profile id", key="id",
                                         expected="string")

    if launcher is LauncherType.OFFICIAL:
        return vanilla, loader_profile
    return BundleFiles(
        vanilla=vanilla,
        minecraft_patch=get_mmc_json(vanilla, version),
        loader_profile=loader_profile,
    )
