"""Rewrite rules applied to launch profiles.

These change every now and then (new remapping artifacts, loader versions needing a
compatibility flag), so they are kept as ordered data rather than inline checks.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, Iterable, List, Sequence, Tuple

from . import ORNITHE_MAVEN_URL
from .enums import LoaderType
from .errors import MalformedDocumentError, expect_type

log = logging.getLogger(__name__)


def split_maven(name: str) -> Tuple[str, str, str]:
    """Splits ``group:artifact:version[:classifier]`` into group, artifact and version."""
    parts = name.split(":")
    if len(parts) < 3:
        raise MalformedDocumentError(f"Not a maven coordinate: {name}", key="name", expected="string")
    return parts[0], parts[1], parts[2]


def artifact_key(name: str) -> str:
    """``group:artifact`` part of a maven coordinate."""
    return ":".join(name.split(":")[:2])


@dataclass(frozen=True)
class LibraryRewrite:
    """Points every version of ``source`` (``group:artifact``) at ``target`` on ``url``."""

    source: str
    target: str
    url: str

    def matches(self, library: Dict[str, Any]) -> bool:
        name = library.get("name")
        return isinstance(name, str) and artifact_key(name) == self.source

    def apply(self, library: Dict[str, Any]) -> None:
        # name and url are always replaced together
        rest = library["name"][len(self.source):]
        library.update(name=self.target + rest, url=self.url)


@dataclass(frozen=True)
class JvmArgumentInjection:
    loader_type: LoaderType
    loader_versions: FrozenSet[str]
    argument: str

    def matches(self, loader_type: LoaderType, loader_version: str) -> bool:
        return loader_type is self.loader_type and loader_version in self.loader_versions

    def apply(self, profile: Dict[str, Any]) -> bool:
        arguments = profile.get("arguments")
        if not isinstance(arguments, dict):
            arguments = profile["arguments"] = {}
        jvm = arguments.get("jvm")
        if not isinstance(jvm, list):
            jvm = arguments["jvm"] = []
        if self.argument in jvm:
            return False
        jvm.append(self.argument)
        return True


LIBRARY_REWRITES: Sequence[LibraryRewrite] = (
    # use calamus intermediary instead of the upstream mappings the loaders ask for
    LibraryRewrite("net.fabricmc:intermediary", "net.ornithemc:calamus-intermediary", ORNITHE_MAVEN_URL),
    LibraryRewrite("org.quiltmc:hashed", "net.ornithemc:calamus-intermediary", ORNITHE_MAVEN_URL),
)

# Quilt Loader releases that shipped the beacon and try to reach it on startup
QUILT_BEACON_VERSIONS = frozenset({
    "0.17.0", "0.17.1", "0.17.2", "0.17.3", "0.17.4", "0.17.5",
    "0.17.6", "0.17.7", "0.17.8", "0.17.9", "0.17.10", "0.17.11",
})

JVM_ARGUMENT_INJECTIONS: Sequence[JvmArgumentInjection] = (
    JvmArgumentInjection(LoaderType.QUILT, QUILT_BEACON_VERSIONS, "-Dloader.disable_beacon=true"),
)

# Provided separately by MultiMC (LWJGL component) or by the loader (ASM)
MMC_PROVIDED_LIBRARIES: Sequence[str] = ("org.lwjgl", "org.ow2.asm")


def rewrite_libraries(profile: Dict[str, Any], rules: Iterable[LibraryRewrite] = LIBRARY_REWRITES) -> int:
    """Applies the first matching rule to each library. Returns the number rewritten.

    Running it again on its own output changes nothing, since rules match source
    artifacts only.
    """
    rules = list(rules)
    rewritten = 0
    for library in profile.get("libraries", []):
        if not isinstance(library, dict):
            continue
        for rule in rules:
            if rule.matches(library):
                old_name = library["name"]
                rule.apply(library)
                log.debug(f"Rewrote library {old_name} -> {library['name']}")
                rewritten += 1
                break
    return rewritten


def inject_jvm_arguments(
    profile: Dict[str, Any],
    loader_type: LoaderType,
    loader_version: str,
    rules: Iterable[JvmArgumentInjection] = JVM_ARGUMENT_INJECTIONS,
) -> List[str]:
    """Returns the arguments that were added."""
    added = []
    for rule in rules:
        if rule.matches(loader_type, loader_version) and rule.apply(profile):
            log.debug(f"Injected JVM argument {rule.argument} for {loader_type.loader_name} {loader_version}")
            added.append(rule.argument)
    return added


def strip_libraries(libraries: List[Dict[str, Any]], groups: Iterable[str] = MMC_PROVIDED_LIBRARIES) -> List[Dict[str, Any]]:
    """Libraries whose maven group is (or is below) one of ``groups`` removed."""
    groups = tuple(groups)

    def provided(library: Dict[str, Any]) -> bool:
        expect_type(library, dict, "libraries", "Launch json")
        name = library.get("name")
        group = name.split(":")[0] if isinstance(name, str) else ""
        return any(group == g or group.startswith(g + ".") for g in groups)

    return [library for library in libraries if not provided(library)]
