import json
import zipfile

import pytest

from ornithe_installer.enums import GameSide, LauncherType, LoaderType
from ornithe_installer.errors import FilesystemError, InstallerError, LookupFailedError, MalformedDocumentError
from ornithe_installer.manifest import VersionManifest
from ornithe_installer import mmc_pack
from ornithe_installer.mmc_pack import (
    Lwjgl,
    compile_mmc_zip,
    find_lwjgl,
    instance_cfg,
    intermediary_patch,
    is_linux_like,
    needs_noapplet,
    parse_semver,
    upgrade_libraries,
    upgrade_patch,
    zip_name,
)
from ornithe_installer.launch_json import synthesize

from conftest import META_URL, dump, loader_profile, manifest_document


@pytest.fixture
def manifest(client):
    return VersionManifest.read(manifest_document(), client.fetch_json_sync)


async def build_zip(client, manifest, tmp_path, game_version, intermediary_maven, system="Windows"):
    version = manifest.get_version(game_version)
    bundle = await synthesize(client, version, LoaderType.FABRIC, "0.16.0", LauncherType.MULTIMC, 1,
                              GameSide.CLIENT, META_URL)
    return await compile_mmc_zip(client, tmp_path, version, LoaderType.FABRIC, "0.16.0", 1, intermediary_maven,
                                 bundle, GameSide.CLIENT, META_URL, system)


def read_entry(zip_path, name):
    with zipfile.ZipFile(zip_path) as zipf:
        return zipf.read(name)


@pytest.mark.asyncio
async def test_legacy_version_archive(client, manifest, tmp_path):
    zip_path = await build_zip(client, manifest, tmp_path, "1.2.5", "net.ornithemc:calamus-intermediary:1.2.5-client")

    assert zip_path == tmp_path / "Ornithe-Gen1-Fabric-1.2.5.zip"
    with zipfile.ZipFile(zip_path) as zipf:
        assert zipf.namelist() == [
            "mmc-pack.json",
            "instance.cfg",
            "ornithe.png",
            "patches/net.fabricmc.intermediary.json",
            "patches/net.minecraft.json",
            "patches/com.google.guava.guava.json",
        ]

    intermediary = json.loads(read_entry(zip_path, "patches/net.fabricmc.intermediary.json"))
    assert intermediary["+traits"] == ["noapplet"]
    assert list(intermediary)[0] == "+traits"
    assert intermediary["version"] == "1.2.5-client"
    assert intermediary["libraries"][0]["name"] == "net.ornithemc:calamus-intermediary:1.2.5-client"
    assert intermediary["requires"] == [{"equals": "1.2.5", "uid": "net.minecraft"}]

    minecraft = json.loads(read_entry(zip_path, "patches/net.minecraft.json"))
    assert minecraft["requires"] == [{"suggests": "2.9.0", "uid": "org.lwjgl"}]

    pack = json.loads(read_entry(zip_path, "mmc-pack.json"))
    assert [c["uid"] for c in pack["components"]] == [
        "org.lwjgl", "net.minecraft", "net.fabricmc.intermediary", "com.google.guava.guava", "net.fabricmc.fabric-loader",
    ]
    assert pack["components"][-1]["version"] == "0.16.0"


@pytest.mark.asyncio
async def test_custom_lwjgl_gets_its_own_patch(client, manifest, tmp_path):
    zip_path = await build_zip(client, manifest, tmp_path, "1.6.4", "net.ornithemc:calamus-intermediary:1.6.4")

    with zipfile.ZipFile(zip_path) as zipf:
        names = zipf.namelist()
    assert names.index("patches/org.lwjgl3.json") == names.index("patches/net.fabricmc.intermediary.json") + 1
    assert names.index("patches/net.minecraft.json") == names.index("patches/org.lwjgl3.json") + 1

    lwjgl = json.loads(read_entry(zip_path, "patches/org.lwjgl3.json"))
    assert lwjgl["uid"] == "org.lwjgl3"
    assert lwjgl["version"] == "3.3.3"
    assert lwjgl["name"] == "LWJGL 3"
    assert len(lwjgl["libraries"]) == 2

    intermediary = json.loads(read_entry(zip_path, "patches/net.fabricmc.intermediary.json"))
    assert "+traits" not in intermediary


@pytest.mark.asyncio
async def test_default_lwjgl_has_no_patch(client, manifest, tmp_path):
    zip_path = await build_zip(client, manifest, tmp_path, "1.2.5", "net.ornithemc:calamus-intermediary:1.2.5-client")

    with zipfile.ZipFile(zip_path) as zipf:
        assert "patches/org.lwjgl.json" not in zipf.namelist()


@pytest.mark.asyncio
async def test_archive_is_reproducible(client, manifest, tmp_path):
    first = await build_zip(client, manifest, tmp_path / "a", "1.6.4", "net.ornithemc:calamus-intermediary:1.6.4")
    second = await build_zip(client, manifest, tmp_path / "b", "1.6.4", "net.ornithemc:calamus-intermediary:1.6.4")

    assert first.read_bytes() == second.read_bytes()


@pytest.mark.asyncio
async def test_linux_instance_cfg_in_archive(client, manifest, tmp_path):
    zip_path = await build_zip(client, manifest, tmp_path, "1.6.4", "net.ornithemc:calamus-intermediary:1.6.4",
                               system="Linux")

    cfg = read_entry(zip_path, "instance.cfg").decode("utf-8")
    assert "name=Ornithe Fabric 1.6.4" in cfg
    assert cfg.endswith('OverrideCommands=true\nWrapperCommand="env __GL_THREADED_OPTIMIZATIONS=0"')


@pytest.mark.asyncio
async def test_failed_write_leaves_nothing_behind(client, manifest, tmp_path, monkeypatch):
    def broken_replace(src, dst):
        raise OSError("disk full")

    monkeypatch.setattr(mmc_pack.os, "replace", broken_replace)

    with pytest.raises(FilesystemError) as exc_info:
        await build_zip(client, manifest, tmp_path, "1.6.4", "net.ornithemc:calamus-intermediary:1.6.4")

    assert exc_info.value.path == tmp_path / "Ornithe-Gen1-Fabric-1.6.4.zip"
    assert list(tmp_path.iterdir()) == []


@pytest.mark.asyncio
async def test_existing_archive_survives_failed_write(client, manifest, tmp_path, monkeypatch):
    existing = tmp_path / "Ornithe-Gen1-Fabric-1.6.4.zip"
    existing.write_bytes(b"old")

    def broken_writestr(self, *args, **kwargs):
        raise OSError("disk full")

    monkeypatch.setattr(mmc_pack.zipfile.ZipFile, "writestr", broken_writestr)

    with pytest.raises(FilesystemError):
        await build_zip(client, manifest, tmp_path, "1.6.4", "net.ornithemc:calamus-intermediary:1.6.4")

    assert existing.read_bytes() == b"old"
    assert list(tmp_path.iterdir()) == [existing]


def test_instance_cfg_per_platform():
    windows = instance_cfg("1.2.5", LoaderType.QUILT, "Windows")

    assert windows.splitlines() == ["InstanceType=OneSix", "iconKey=ornithe", "name=Ornithe Quilt 1.2.5"]
    assert "OverrideCommands" not in instance_cfg("1.2.5", LoaderType.QUILT, "Darwin")
    assert "OverrideCommands=true" in instance_cfg("1.2.5", LoaderType.QUILT, "Linux")


@pytest.mark.parametrize("system, expected", [
    ("Linux", True),
    ("FreeBSD", True),
    ("Windows", False),
    ("Darwin", False),
])
def test_is_linux_like(system, expected):
    assert is_linux_like(system) is expected


def test_semver_ordering():
    assert parse_semver("1.6.0-pre") < parse_semver("1.6.0")
    assert parse_semver("1.6.0-pre+06251516") == parse_semver("1.6.0-pre")
    assert parse_semver("1.0.0-alpha.2") < parse_semver("1.0.0-alpha.10")
    assert parse_semver("1.0.0-alpha.2") < parse_semver("1.0.0-alpha.beta")
    assert parse_semver("1.6.0-alpha.13.16.a") < parse_semver("1.6.0-pre")
    assert parse_semver("1.6") is None
    assert parse_semver("b1.7.3") is None


@pytest.mark.parametrize("normalized, expected", [
    ("1.2.5", True),
    ("1.5.2", True),
    ("1.6.0-pre", False),
    ("1.6.0-alpha.13.16.a", True),
    ("1.6.4", False),
    ("0.30.0-classic", True),
    ("not-a-version", False),
    (None, False),
])
def test_needs_noapplet(normalized, expected):
    assert needs_noapplet(normalized) is expected


def test_find_lwjgl_requires_the_library():
    with pytest.raises(LookupFailedError):
        find_lwjgl({"id": "x", "libraries": [{"name": "net.java.jinput:jinput:2.0.5"}]})


def test_lwjgl_properties():
    default = Lwjgl("2.9.0", "https://libraries.minecraft.net/org/lwjgl/lwjgl/lwjgl/2.9.0/lwjgl-2.9.0.jar")
    custom = Lwjgl("3.3.3", "https://maven.ornithemc.net/releases/")

    assert (default.uid, default.name, default.is_custom) == ("org.lwjgl", "LWJGL 2", False)
    assert (custom.uid, custom.name, custom.is_custom) == ("org.lwjgl3", "LWJGL 3", True)
    with pytest.raises(ValueError):
        Lwjgl("4.0.0", "x").uid


def test_upgrade_patch():
    library = {"name": "com.google.guava:guava:21.0", "url": "https://libraries.minecraft.net/"}

    patch, component = upgrade_patch(library)

    assert patch["uid"] == component["uid"] == "com.google.guava.guava"
    assert patch["libraries"] == [library]
    assert component["version"] == "21.0"


def test_intermediary_patch_without_noapplet():
    patch = intermediary_patch("1.6.4", "net.ornithemc:calamus-intermediary:1.6.4", False)

    assert "+traits" not in patch
    assert patch["version"] == "1.6.4"


def test_zip_name():
    assert zip_name("b1.7.3", LoaderType.QUILT, 2) == "Ornithe-Gen2-Quilt-b1.7.3.zip"


@pytest.mark.asyncio
@pytest.mark.parametrize("library", [
    {"url": "https://libraries.minecraft.net/"},
    {"name": "guava", "url": "https://libraries.minecraft.net/"},
    {"name": 21, "url": "https://libraries.minecraft.net/"},
])
async def test_malformed_upgrade_library(client, manifest, tmp_path, routes, library):
    profile = loader_profile("1.6.4")
    profile["libraries"].append(library)
    routes[f"{META_URL}/v3/versions/gen1/fabric-loader/1.6.4/0.16.0/profile/json"] = dump(profile)

    with pytest.raises(MalformedDocumentError) as exc_info:
        await build_zip(client, manifest, tmp_path, "1.6.4", "net.ornithemc:calamus-intermediary:1.6.4")

    assert isinstance(exc_info.value, InstallerError)
    assert exc_info.value.key == "name"
    assert list(tmp_path.iterdir()) == []


def test_upgrade_libraries_rejects_non_object_entries():
    with pytest.raises(MalformedDocumentError) as exc_info:
        upgrade_libraries({"libraries": ["com.google.guava:guava:21.0"]})
    assert exc_info.value.expected == "object"


def test_upgrade_patch_needs_a_maven_coordinate():
    with pytest.raises(MalformedDocumentError) as exc_info:
        upgrade_patch({"name": "guava", "url": "https://libraries.minecraft.net/"})
    assert exc_info.value.key == "name"


def test_find_lwjgl_rejects_nameless_library():
    with pytest.raises(MalformedDocumentError) as exc_info:
        find_lwjgl({"id": "1.2.5", "libraries": [{"url": "https://libraries.minecraft.net/"}]})
    assert exc_info.value.key == "name"
