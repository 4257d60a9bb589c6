"""Install actions: look up what to install, then write it for the chosen launcher."""
import asyncio
import json
import logging
import pathlib
import shutil
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import aiofiles
import aiofiles.os

from . import MANIFEST_BASE_URL, ORNITHE_META_URL
from .endpoint import generations_endpoint, intermediary_versions_endpoint, loader_versions_endpoint
from .enums import GameSide, LauncherType, LoaderType
from .errors import FilesystemError, LookupFailedError
from .launch_json import resolve_details, synthesize
from .manifest import Version, VersionManifest, manifest_endpoint
from .meta import MetaClient
from .mmc_pack import compile_mmc_zip

log = logging.getLogger(__name__)


@dataclass
class InstallationInfo:
    manifest: VersionManifest
    version: Version
    loader_version: str
    generation: int
    intermediary_maven: str


def latest_stable(versions) -> Optional[str]:
    """First version without a pre-release suffix; lists are newest first."""
    return next((v for v in versions if "-" not in v), None)


def latest_beta(versions) -> Optional[str]:
    return next((v for v in versions if "-" in v), None)


async def get_manifest(client: MetaClient, manifest_url: str = MANIFEST_BASE_URL) -> VersionManifest:
    endpoint = manifest_endpoint(client.registry, client.fetch_json_sync)
    meta = await client.resolve(manifest_url, [endpoint])
    return meta.get(endpoint)


async def get_installation_info(
    client: MetaClient,
    side: GameSide,
    game_version: str,
    loader_type: LoaderType,
    loader_version: Optional[str] = None,
    generation: Optional[int] = None,
    meta_url: str = ORNITHE_META_URL,
    manifest_url: str = MANIFEST_BASE_URL,
) -> InstallationInfo:
    """Verifies the game version exists and has intermediary, and picks the loader version.

    Without ``loader_version`` the newest stable loader is used; without
    ``generation`` the stable intermediary generation is used.
    """
    if generation is None:
        gens_endpoint = generations_endpoint(client.registry)
        generation = (await client.resolve(meta_url, [gens_endpoint])).get(gens_endpoint).stable
        log.info(f"Using intermediary generation {generation}")

    versions_endpoint = loader_versions_endpoint(client.registry, loader_type)
    intermediary_endpoint = intermediary_versions_endpoint(client.registry, generation)

    manifest, meta = await asyncio.gather(
        get_manifest(client, manifest_url),
        client.resolve(meta_url, [versions_endpoint, intermediary_endpoint]),
    )

    version = manifest.get_version(game_version)
    if version is None:
        raise LookupFailedError("Minecraft version", game_version)

    await resolve_details(version)
    intermediary = meta.get(intermediary_endpoint)
    intermediary_maven = intermediary.get(version.id_for(side))
    if intermediary_maven is None:
        raise LookupFailedError(f"Intermediary (generation {generation}) for Minecraft version", version.id_for(side))

    loader_versions = meta.get(versions_endpoint)
    if loader_version is not None:
        if loader_version not in loader_versions:
            raise LookupFailedError(f"{loader_type.fancy_name} Loader version", loader_version)
    else:
        loader_version = latest_stable(loader_versions)
        if loader_version is None:
            raise LookupFailedError(f"Stable {loader_type.fancy_name} Loader version", "latest")

    return InstallationInfo(manifest, version, loader_version, generation, intermediary_maven)


# --- Official launcher ---

def _clear_profile_dir(profile_dir: pathlib.Path) -> None:
    if profile_dir.exists():
        log.debug(f"Removing existing profile directory: {profile_dir}")
        shutil.rmtree(profile_dir)
    profile_dir.mkdir(parents=True, exist_ok=True)


async def write_profile(versions_dir: pathlib.Path, profile: Dict[str, Any]) -> pathlib.Path:
    """Writes ``versions/<id>/<id>.json`` next to an empty jar of the same name.

    The launcher only checks that a jar named after the profile exists.
    """
    profile_id = profile["id"]
    profile_dir = versions_dir / profile_id
    profile_json = profile_dir / f"{profile_id}.json"
    try:
        await asyncio.get_running_loop().run_in_executor(None, _clear_profile_dir, profile_dir)
        async with aiofiles.open(profile_dir / f"{profile_id}.jar", "wb"):
            pass
        async with aiofiles.open(profile_json, "w", encoding="utf-8") as f:
            await f.write(json.dumps(profile, indent=2))
    except OSError as e:
        raise FilesystemError(profile_json, e) from e
    log.info(f"Wrote {profile_json}")
    return profile_json


async def update_launcher_profiles(install_dir: pathlib.Path, profile_id: str, game_version: str,
                                   loader_type: LoaderType) -> None:
    """Adds (or refreshes) a custom profile for ``profile_id`` in launcher_profiles.json."""
    profiles_path = install_dir / "launcher_profiles.json"
    profiles_data: Dict[str, Any] = {"profiles": {}, "settings": {}, "version": 3}
    try:
        if await aiofiles.os.path.exists(profiles_path):
            async with aiofiles.open(profiles_path, "r", encoding="utf-8") as f:
                profiles_data = json.loads(await f.read())
    except json.JSONDecodeError as e:
        log.warning(f"Could not parse {profiles_path}: {e}. Starting from an empty profile list.")

    now = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.000Z")
    profiles = profiles_data.setdefault("profiles", {})
    key = f"ornithe-{loader_type.loader_name}-{game_version}"
    existing = profiles.get(key, {})
    profiles[key] = {
        "created": existing.get("created", now),
        "icon": existing.get("icon", "Furnace"),
        "lastUsed": now,
        "lastVersionId": profile_id,
        "name": f"Ornithe {loader_type.fancy_name} {game_version}",
        "type": "custom",
    }

    try:
        await aiofiles.os.makedirs(install_dir, exist_ok=True)
        async with aiofiles.open(profiles_path, "w", encoding="utf-8") as f:
            await f.write(json.dumps(profiles_data, indent=2))
    except OSError as e:
        raise FilesystemError(profiles_path, e) from e
    log.info(f"Created/updated profile '{key}' in {profiles_path}")


async def install_official(client: MetaClient, info: InstallationInfo, loader_type: LoaderType,
                           install_dir: pathlib.Path, generate_profile: bool = True,
                           meta_url: str = ORNITHE_META_URL) -> str:
    """Writes the vanilla and loader profiles into ``install_dir/versions``. Returns the loader profile id."""
    log.info(f"Installing Minecraft client {info.version.id} with {loader_type.fancy_name} Loader "
             f"{info.loader_version} at: {install_dir}")
    vanilla, profile = await synthesize(client, info.version, loader_type, info.loader_version,
                                        LauncherType.OFFICIAL, info.generation, GameSide.CLIENT, meta_url)

    versions_dir = install_dir / "versions"
    await write_profile(versions_dir, vanilla)
    await write_profile(versions_dir, profile)

    if generate_profile:
        await update_launcher_profiles(install_dir, profile["id"], info.version.id, loader_type)
    log.info("Completed installation")
    return profile["id"]


# --- MultiMC ---

async def install_multimc(client: MetaClient, info: InstallationInfo, loader_type: LoaderType,
                          output_dir: pathlib.Path, meta_url: str = ORNITHE_META_URL) -> pathlib.Path:
    bundle = await synthesize(client, info.version, loader_type, info.loader_version,
                              LauncherType.MULTIMC, info.generation, GameSide.CLIENT, meta_url)
    zip_path = await compile_mmc_zip(client, output_dir, info.version, loader_type, info.loader_version,
                                     info.generation, info.intermediary_maven, bundle, GameSide.CLIENT, meta_url)
    log.info(f"Instance zip written to {zip_path}, import it from the launcher's 'Add Instance' dialog")
    return zip_path


# --- Listing ---

async def list_versions(client: MetaClient, loader_type: LoaderType, snapshots: bool = False,
                        loader_betas: bool = False, meta_url: str = ORNITHE_META_URL,
                        manifest_url: str = MANIFEST_BASE_URL) -> Dict[str, Optional[str]]:
    """Logs and returns the latest game and loader versions."""
    versions_endpoint = loader_versions_endpoint(client.registry, loader_type)
    manifest, meta = await asyncio.gather(
        get_manifest(client, manifest_url),
        client.resolve(meta_url, [versions_endpoint]),
    )
    loader_versions = meta.get(versions_endpoint)

    latest = {
        "release": manifest.latest_release.id if manifest.latest_release else None,
        "loader": latest_stable(loader_versions),
    }
    if snapshots:
        latest["snapshot"] = manifest.latest_snapshot.id if manifest.latest_snapshot else None
    if loader_betas:
        latest["loader_beta"] = latest_beta(loader_versions)

    log.info(f"Latest Minecraft release: {latest['release']}")
    if snapshots:
        log.info(f"Latest Minecraft snapshot: {latest['snapshot']}")
    log.info(f"Latest {loader_type.fancy_name} Loader release: {latest['loader']}")
    if loader_betas:
        log.info(f"Latest {loader_type.fancy_name} Loader beta: {latest['loader_beta']}")
    log.info(f"{len(manifest)} Minecraft versions available")
    return latest
