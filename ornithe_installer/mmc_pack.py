"""Creates MultiMC / Prism Launcher instance zips."""
import asyncio
import json
import logging
import os
import pathlib
import platform
import tempfile
import zipfile
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import semver

from . import MINECRAFT_LIBRARIES_URL, ORNITHE_META_URL
from .endpoint import loader_profile_endpoint
from .enums import GameSide, LoaderType
from .errors import FilesystemError, LookupFailedError, expect_type, require
from .launch_json import MINECRAFT_UID, BundleFiles, resolve_details
from .manifest import Version
from .meta import MetaClient
from .replacer import fill_document, fill_template
from .rules import split_maven

log = logging.getLogger(__name__)

PACKFORMAT_DIR = pathlib.Path(__file__).parent / "packformat"

PACK_JSON_PATH = "mmc-pack.json"
INSTANCE_CFG_PATH = "instance.cfg"
ICON_PATH = "ornithe.png"
INTERMEDIARY_UID = "net.fabricmc.intermediary"
INTERMEDIARY_JSON_PATH = f"patches/{INTERMEDIARY_UID}.json"
MINECRAFT_JSON_PATH = f"patches/{MINECRAFT_UID}.json"

OVERRIDE_COMMANDS = "OverrideCommands=true"
ENV_WRAPPER_COMMAND = 'WrapperCommand="env __GL_THREADED_OPTIMIZATIONS=0"'

# fixed timestamp so the same input gives the same archive
ZIP_DATE_TIME = (1980, 1, 1, 0, 0, 0)


# --- Version ordering ---

def parse_semver(version: str) -> Optional[semver.Version]:
    """None if ``version`` is not a semantic version."""
    try:
        return semver.Version.parse(version)
    except ValueError:
        return None


# the applet frame is gone from 1.6 onwards
NOAPPLET_BEFORE = semver.Version.parse("1.6.0-pre+06251516")


def needs_noapplet(normalized_version: Optional[str]) -> bool:
    if normalized_version is None:
        return False
    version = parse_semver(normalized_version)
    if version is None:
        log.warning(f"Cannot compare normalized version '{normalized_version}', assuming applet support")
        return False
    return version < NOAPPLET_BEFORE


# --- LWJGL ---

@dataclass(frozen=True)
class Lwjgl:
    version: str
    url: str

    @property
    def major_version(self) -> str:
        return self.version.split(".")[0]

    @property
    def uid(self) -> str:
        if self.major_version == "2":
            return "org.lwjgl"
        if self.major_version == "3":
            return "org.lwjgl3"
        raise ValueError(f"unknown major LWJGL version {self.major_version}")

    @property
    def name(self) -> str:
        return f"LWJGL {self.major_version}"

    @property
    def is_custom(self) -> bool:
        return not self.url.startswith(MINECRAFT_LIBRARIES_URL)


def _library_url(library: Dict[str, Any]) -> Optional[str]:
    if isinstance(library.get("url"), str):
        return library["url"]
    artifact = (library.get("downloads") or {}).get("artifact") or {}
    return artifact.get("url")


def _is_lwjgl_group(group: str) -> bool:
    return group == "org.lwjgl" or group.startswith("org.lwjgl.")


def libraries_of(document: Dict[str, Any], context: str) -> List[Dict[str, Any]]:
    """The ``libraries`` array of a launch json, each entry checked to be a named object."""
    libraries = expect_type(document.get("libraries", []), list, "libraries", context)
    for library in libraries:
        expect_type(library, dict, "libraries", context)
        require(library, "name", str, f"{context} library")
    return libraries


def find_lwjgl(vanilla: Dict[str, Any]) -> Lwjgl:
    """Finds the ``lwjgl`` artifact in the vanilla libraries."""
    for library in libraries_of(vanilla, "Vanilla launch json"):
        name = library["name"]
        parts = name.split(":")
        if len(parts) < 3 or parts[1] != "lwjgl" or not _is_lwjgl_group(parts[0]):
            continue
        url = _library_url(library)
        if url is None:
            log.debug(f"Skipping {name}, it has no download url")
            continue
        return Lwjgl(parts[2], url)
    raise LookupFailedError("LWJGL library for Minecraft", vanilla.get("id"))


def lwjgl_patch(lwjgl: Lwjgl, vanilla: Dict[str, Any]) -> Dict[str, Any]:
    libraries = [lib for lib in libraries_of(vanilla, "Vanilla launch json")
                 if _is_lwjgl_group(lib["name"].split(":")[0])]
    return {
        "formatVersion": 1,
        "libraries": libraries,
        "name": lwjgl.name,
        "type": "release",
        "uid": lwjgl.uid,
        "version": lwjgl.version,
    }


# --- Library upgrades ---

def upgrade_libraries(loader_profile: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Libraries the loader wants in a newer version than the game ships with."""
    return [lib for lib in libraries_of(loader_profile, "Loader profile") if lib.get("url") == MINECRAFT_LIBRARIES_URL]


def upgrade_patch(library: Dict[str, Any]) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    """Returns the patch document and the mmc-pack component for one upgraded library."""
    group, artifact, version = split_maven(require(library, "name", str, "Loader profile library"))
    uid = f"{group}.{artifact}"
    patch = {
        "formatVersion": 1,
        "libraries": [library],
        "name": artifact,
        "type": "release",
        "uid": uid,
        "version": version,
    }
    component = {
        "cachedName": artifact,
        "cachedVersion": version,
        "uid": uid,
        "version": version,
    }
    return patch, component


# --- Pack files ---

def is_linux_like(system: Optional[str] = None) -> bool:
    system = (system if system is not None else platform.system()).lower()
    return "linux" in system or not ("win" in system or "mac" in system or "darwin" in system)


def read_resource(path: str) -> str:
    return (PACKFORMAT_DIR / path).read_text(encoding="utf-8")


def instance_cfg(game_version: str, loader_type: LoaderType, system: Optional[str] = None) -> str:
    cfg = fill_template(read_resource(INSTANCE_CFG_PATH), {
        "mc_version": game_version,
        "loader_name": loader_type.fancy_name,
    })
    if is_linux_like(system):
        cfg = cfg.rstrip("\n") + "\n" + OVERRIDE_COMMANDS + "\n" + ENV_WRAPPER_COMMAND
    return cfg


def intermediary_patch(game_version: str, intermediary_maven: str, noapplet: bool) -> Dict[str, Any]:
    template = json.loads(read_resource(INTERMEDIARY_JSON_PATH))
    patch = fill_document(template, {
        "mc_version": game_version,
        "intermediary_maven": intermediary_maven,
        "intermediary_ver": split_maven(intermediary_maven)[2],
    })
    if noapplet:
        patch = {"+traits": ["noapplet"], **patch}
    return patch


def pack_json(game_version: str, loader_type: LoaderType, loader_version: str, lwjgl: Lwjgl,
              intermediary_version: str, upgrade_components: List[Dict[str, Any]]) -> Dict[str, Any]:
    components = [
        {
            "cachedName": lwjgl.name,
            "cachedVersion": lwjgl.version,
            "cachedVolatile": True,
            "dependencyOnly": True,
            "uid": lwjgl.uid,
            "version": lwjgl.version,
        },
        {
            "cachedName": "Minecraft",
            "cachedRequires": [{"suggests": lwjgl.version, "uid": lwjgl.uid}],
            "cachedVersion": game_version,
            "important": True,
            "uid": MINECRAFT_UID,
            "version": game_version,
        },
        {
            "cachedName": "Intermediary Mappings",
            "cachedRequires": [{"equals": game_version, "uid": MINECRAFT_UID}],
            "cachedVersion": intermediary_version,
            "cachedVolatile": True,
            "dependencyOnly": True,
            "uid": INTERMEDIARY_UID,
            "version": intermediary_version,
        },
        *upgrade_components,
        {
            "cachedName": f"{loader_type.fancy_name} Loader",
            "cachedRequires": [{"uid": INTERMEDIARY_UID}],
            "cachedVersion": loader_version,
            "uid": loader_type.maven_uid,
            "version": loader_version,
        },
    ]
    return {"components": components, "formatVersion": 1}


def zip_name(game_version: str, loader_type: LoaderType, generation: int) -> str:
    return f"Ornithe-Gen{generation}-{loader_type.fancy_name}-{game_version}.zip"


def _dump(document: Any) -> bytes:
    return json.dumps(document, indent=2).encode("utf-8")


def _write_zip(zip_path: pathlib.Path, entries: List[Tuple[str, bytes]]) -> None:
    """Writes the archive next to its destination first, then moves it in place."""
    try:
        zip_path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{zip_path.name}.", suffix=".part", dir=zip_path.parent)
        os.close(fd)
    except OSError as e:
        raise FilesystemError(zip_path, e) from e

    tmp_path = pathlib.Path(tmp_name)
    try:
        with zipfile.ZipFile(tmp_path, "w", zipfile.ZIP_DEFLATED) as zipf:
            for name, data in entries:
                info = zipfile.ZipInfo(name, date_time=ZIP_DATE_TIME)
                info.compress_type = zipfile.ZIP_DEFLATED
                zipf.writestr(info, data)
        os.replace(tmp_path, zip_path)
    except OSError as e:
        log.error(f"Failed to write {zip_path}: {e}")
        try:
            tmp_path.unlink()
        except FileNotFoundError:
            pass
        raise FilesystemError(zip_path, e) from e


async def compile_mmc_zip(
    client: MetaClient,
    output_dir: pathlib.Path,
    version: Version,
    loader_type: LoaderType,
    loader_version: str,
    generation: int,
    intermediary_maven: str,
    bundle: BundleFiles,
    side: GameSide = GameSide.CLIENT,
    base_url: str = ORNITHE_META_URL,
    system: Optional[str] = None,
) -> pathlib.Path:
    """Packages ``bundle`` into ``output_dir`` and returns the archive path."""
    endpoint = loader_profile_endpoint(client.registry, side, loader_type, version.id_for(side),
                                       loader_version, generation)
    meta = await client.resolve(base_url, [endpoint])
    upgrades = [upgrade_patch(lib) for lib in upgrade_libraries(meta.get(endpoint))]

    details = await resolve_details(version)
    lwjgl = find_lwjgl(bundle.vanilla)
    log.info(f"Using {lwjgl.name} {lwjgl.version}{' (custom build)' if lwjgl.is_custom else ''} for {version.id}")

    minecraft_patch = fill_document(bundle.minecraft_patch, {
        "lwjgl_version": lwjgl.version,
        "lwjgl_uid": lwjgl.uid,
    })

    entries: List[Tuple[str, bytes]] = [
        (PACK_JSON_PATH, _dump(pack_json(version.id, loader_type, loader_version, lwjgl,
                                         split_maven(intermediary_maven)[2], [c for _, c in upgrades]))),
        (INSTANCE_CFG_PATH, instance_cfg(version.id, loader_type, system).encode("utf-8")),
        (ICON_PATH, (PACKFORMAT_DIR / ICON_PATH).read_bytes()),
        (INTERMEDIARY_JSON_PATH, _dump(intermediary_patch(version.id, intermediary_maven,
                                                          needs_noapplet(details.normalized_version)))),
    ]
    if lwjgl.is_custom:
        entries.append((f"patches/{lwjgl.uid}.json", _dump(lwjgl_patch(lwjgl, bundle.vanilla))))
    entries.append((MINECRAFT_JSON_PATH, _dump(minecraft_patch)))
    for patch, _ in upgrades:
        entries.append((f"patches/{patch['uid']}.json", _dump(patch)))

    zip_path = pathlib.Path(output_dir) / zip_name(version.id, loader_type, generation)
    log.info(f"Writing {len(entries)} entries to {zip_path}")
    loop = asyncio.get_running_loop()
    await loop.run_in_executor(None, _write_zip, zip_path, entries)
    return zip_path
