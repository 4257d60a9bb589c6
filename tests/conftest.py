import asyncio
import json
from typing import Any, Dict, Union

import aiohttp
import pytest
import requests

from ornithe_installer.meta import MetaClient

META_URL = "https://meta.test"
MANIFEST_URL = "https://mc.test"

Route = Union[bytes, int, Exception]


def dump(document: Any) -> bytes:
    return json.dumps(document).encode("utf-8")


# --- Fake HTTP sessions ---

class FakeResponse:
    def __init__(self, url: str, route: Route) -> None:
        self.url = url
        self.route = route
        self.status = route if isinstance(route, int) else 200

    async def __aenter__(self) -> "FakeResponse":
        if isinstance(self.route, Exception):
            raise self.route
        return self

    async def __aexit__(self, *exc_info) -> bool:
        return False

    def raise_for_status(self) -> None:
        if self.status >= 400:
            raise aiohttp.ClientConnectionError(f"HTTP {self.status} for {self.url}")

    async def read(self) -> bytes:
        # give other fetches a chance to start before this one completes
        await asyncio.sleep(0)
        return self.route


class FakeSession:
    """Stands in for ``aiohttp.ClientSession``; unknown URLs answer 404."""

    def __init__(self, routes: Dict[str, Route]) -> None:
        self.routes = routes
        self.calls = []
        self.closed = False

    def get(self, url: str) -> FakeResponse:
        self.calls.append(url)
        return FakeResponse(url, self.routes.get(url, 404))

    async def close(self) -> None:
        self.closed = True


class FakeHttpResponse:
    def __init__(self, url: str, route: Route) -> None:
        self.url = url
        self.content = route if isinstance(route, bytes) else b""
        self.status_code = route if isinstance(route, int) else 200

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} for {self.url}")


class FakeHttp:
    """Stands in for ``requests.Session``."""

    def __init__(self, routes: Dict[str, Route]) -> None:
        self.routes = routes
        self.calls = []
        self.headers = {}
        self.closed = False

    def get(self, url: str, timeout=None) -> FakeHttpResponse:
        self.calls.append(url)
        route = self.routes.get(url, 404)
        if isinstance(route, Exception):
            raise route
        return FakeHttpResponse(url, route)

    def close(self) -> None:
        self.closed = True


# --- Documents ---

LWJGL2_LIBRARIES = [
    {
        "name": "org.lwjgl.lwjgl:lwjgl:2.9.0",
        "downloads": {"artifact": {"url": "https://libraries.minecraft.net/org/lwjgl/lwjgl/lwjgl/2.9.0/lwjgl-2.9.0.jar"}},
    },
    {
        "name": "org.lwjgl.lwjgl:lwjgl_util:2.9.0",
        "downloads": {"artifact": {"url": "https://libraries.minecraft.net/org/lwjgl/lwjgl/lwjgl_util/2.9.0/lwjgl_util-2.9.0.jar"}},
    },
]


def manifest_document() -> Dict[str, Any]:
    return {
        "latest": {"release": "1.6.4", "snapshot": "12w08a"},
        "versions": [
            {"id": "12w08a", "type": "snapshot", "url": f"{MANIFEST_URL}/v/12w08a.json",
             "details": f"{MANIFEST_URL}/d/12w08a.json"},
            {"id": "1.6.4", "type": "release", "url": f"{MANIFEST_URL}/v/1.6.4.json",
             "details": f"{MANIFEST_URL}/d/1.6.4.json", "releaseTime": "2013-09-19T15:52:37+00:00"},
            {"id": "1.2.5", "type": "release", "url": f"{MANIFEST_URL}/v/1.2.5.json",
             "details": f"{MANIFEST_URL}/d/1.2.5.json", "releaseTime": "2012-03-29T22:00:00+00:00"},
        ],
    }


def details_1_2_5() -> Dict[str, Any]:
    return {
        "manifests": [{"url": f"{MANIFEST_URL}/m/1.2.5-client.json"}],
        "sharedMappings": False,
        "libraries": ["net.minecraft:launchwrapper:1.5", "org.lwjgl.lwjgl:lwjgl:2.9.0"],
        "normalizedVersion": "1.2.5",
    }


def details_1_6_4() -> Dict[str, Any]:
    return {
        "manifests": [],
        "sharedMappings": True,
        "libraries": ["org.lwjgl:lwjgl:3.3.3"],
        "normalizedVersion": "1.6.4",
    }


def version_json_1_2_5() -> Dict[str, Any]:
    return {
        "id": "1.2.5",
        "assetIndex": {"id": "pre-1.6", "url": f"{MANIFEST_URL}/a/pre-1.6.json"},
        "downloads": {"client": {"sha1": "4a2fac7504182a97dcbcd7560c6392d7c8139928", "size": 4222104,
                                 "url": f"{MANIFEST_URL}/c/1.2.5.jar"}},
        "libraries": LWJGL2_LIBRARIES + [
            {"name": "net.java.jinput:jinput:2.0.5",
             "downloads": {"artifact": {"url": "https://libraries.minecraft.net/net/java/jinput/jinput/2.0.5/jinput-2.0.5.jar"}}},
            {"name": "org.ow2.asm:asm-all:4.1",
             "downloads": {"artifact": {"url": "https://libraries.minecraft.net/org/ow2/asm/asm-all/4.1/asm-all-4.1.jar"}}},
        ],
        "mainClass": "net.minecraft.launchwrapper.Launch",
        "minecraftArguments": "${auth_player_name} ${auth_session} --gameDir ${game_directory}",
        "releaseTime": "2012-03-29T22:00:00+00:00",
        "type": "release",
    }


def fragment_1_2_5() -> Dict[str, Any]:
    return {"minimumLauncherVersion": 18, "type": "old_release"}


def version_json_1_6_4() -> Dict[str, Any]:
    return {
        "id": "1.6.4",
        "arguments": {
            "game": ["--username", "${auth_player_name}",
                     {"rules": [{"action": "allow", "features": {"is_demo_user": True}}], "value": "--demo"},
                     "--version", "${version_name}"],
            "jvm": ["-cp", "${classpath}"],
        },
        "downloads": {"client": {"url": f"{MANIFEST_URL}/c/1.6.4.jar"}},
        "libraries": [
            {"name": "org.lwjgl:lwjgl:3.3.3", "url": "https://maven.ornithemc.net/releases/"},
            {"name": "org.lwjgl:lwjgl-glfw:3.3.3", "url": "https://maven.ornithemc.net/releases/"},
            {"name": "com.paulscode:soundsystem:20120107",
             "downloads": {"artifact": {"url": "https://libraries.minecraft.net/com/paulscode/soundsystem/20120107/soundsystem-20120107.jar"}}},
        ],
        "mainClass": "net.minecraft.client.main.Main",
        "type": "release",
    }


def loader_profile(game_version: str) -> Dict[str, Any]:
    return {
        "id": f"fabric-loader-0.16.0-{game_version}",
        "inheritsFrom": f"{game_version}-vanilla",
        "mainClass": "net.fabricmc.loader.impl.launch.knot.KnotClient",
        "arguments": {"game": []},
        "libraries": [
            {"name": f"net.fabricmc:intermediary:{game_version}", "url": "https://maven.fabricmc.net/"},
            {"name": "net.fabricmc:fabric-loader:0.16.0", "url": "https://maven.fabricmc.net/"},
            {"name": "com.google.guava:guava:21.0", "url": "https://libraries.minecraft.net/"},
        ],
    }


def default_routes() -> Dict[str, Route]:
    return {
        f"{MANIFEST_URL}/version_manifest.json": dump(manifest_document()),
        f"{MANIFEST_URL}/d/1.2.5.json": dump(details_1_2_5()),
        f"{MANIFEST_URL}/d/1.6.4.json": dump(details_1_6_4()),
        f"{MANIFEST_URL}/v/1.2.5.json": dump(version_json_1_2_5()),
        f"{MANIFEST_URL}/m/1.2.5-client.json": dump(fragment_1_2_5()),
        f"{MANIFEST_URL}/v/1.6.4.json": dump(version_json_1_6_4()),
        f"{META_URL}/v3/versions/intermediary_generations": dump({"latest": 2, "stable": 1}),
        f"{META_URL}/v3/versions/fabric-loader": dump([{"version": "0.16.1-beta.1"}, {"version": "0.16.0"},
                                                       {"version": "0.15.11"}]),
        f"{META_URL}/v3/versions/gen1/intermediary": dump([
            {"version": "1.2.5-client", "maven": "net.ornithemc:calamus-intermediary:1.2.5-client", "stable": True},
            {"version": "1.6.4", "maven": "net.ornithemc:calamus-intermediary:1.6.4", "stable": True},
        ]),
        f"{META_URL}/v3/versions/gen1/fabric-loader/1.2.5-client/0.16.0/profile/json": dump(loader_profile("1.2.5")),
        f"{META_URL}/v3/versions/gen1/fabric-loader/1.6.4/0.16.0/profile/json": dump(loader_profile("1.6.4")),
    }


# --- Fixtures ---

@pytest.fixture
def routes() -> Dict[str, Route]:
    return default_routes()


@pytest.fixture
def session(routes) -> FakeSession:
    return FakeSession(routes)


@pytest.fixture
def http(routes) -> FakeHttp:
    return FakeHttp(routes)


@pytest.fixture
def client(session, http) -> MetaClient:
    return MetaClient(session=session, http=http)
