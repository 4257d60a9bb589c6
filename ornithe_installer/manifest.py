"""Object representation of the version manifest (the catalog of game versions).

Every version carries a ``details`` URL pointing at a small per-version document
(manifest fragments, shared mappings flag, LWJGL version). Those are only fetched
when somebody asks for them, since the catalog holds hundreds of versions.
"""
import enum
import logging
import threading
from typing import Any, Callable, Dict, Iterator, Optional, Tuple

from . import MANIFEST_PATH
from .endpoint import Endpoint, EndpointRegistry, load_json
from .enums import GameSide
from .errors import MalformedDocumentError, expect_type, json_type_name, require

log = logging.getLogger(__name__)

FetchDetails = Callable[[str], Any]

LWJGL_LIBRARY_PREFIXES = ("org.lwjgl:lwjgl:", "org.lwjgl.lwjgl:lwjgl:")


class VersionDetails:
    def __init__(self, version: "Version", manifests: Tuple[str, ...], shared_mappings: bool,
                 lwjgl_version: Optional[str] = None, normalized_version: Optional[str] = None) -> None:
        self.version = version
        self.manifests = manifests
        self.shared_mappings = shared_mappings
        self.lwjgl_version = lwjgl_version
        self.normalized_version = normalized_version

    @classmethod
    def read(cls, version: "Version", document: Any) -> "VersionDetails":
        if not isinstance(document, dict):
            raise MalformedDocumentError(f"Version details must be an object, got {json_type_name(document)}",
                                         expected="object")

        manifests = []
        for entry in require(document, "manifests", list, "Version details"):
            manifests.append(require(entry, "url", str, "Version manifest entry"))

        shared_mappings = require(document, "sharedMappings", bool, "Version details")

        lwjgl_version = None
        if "libraries" in document:
            lwjgl_version = find_lwjgl_version(expect_type(document["libraries"], list, "libraries", "Version details"))

        normalized_version = None
        if "normalizedVersion" in document:
            normalized_version = expect_type(document["normalizedVersion"], str, "normalizedVersion", "Version details")

        return cls(version, tuple(manifests), shared_mappings, lwjgl_version, normalized_version)


def find_lwjgl_version(libraries: list) -> Optional[str]:
    """Returns the LWJGL version from a list of maven coordinates, None if absent."""
    for name in libraries:
        expect_type(name, str, "libraries", "Version details")
        for prefix in LWJGL_LIBRARY_PREFIXES:
            if name.startswith(prefix):
                return name[len(prefix):]
    return None


class _DetailsState(enum.Enum):
    UNRESOLVED = "unresolved"
    RESOLVING = "resolving"
    RESOLVED = "resolved"
    FAILED = "failed"


class Version:
    """One entry of the catalog.

    ``type`` is one of ``release``, ``snapshot``, ``old_beta``, ``old_alpha`` (or
    other legacy variants the manifest happens to use).
    """

    def __init__(self, id: str, type: str, url: str, details_url: str,
                 fetch_details: FetchDetails, time: Optional[str] = None,
                 release_time: Optional[str] = None) -> None:
        self.id = id
        self.type = type
        self.url = url
        self.details_url = details_url
        self.time = time
        self.release_time = release_time
        self._fetch_details = fetch_details
        self._lock = threading.Lock()
        self._state = _DetailsState.UNRESOLVED
        self._details: Optional[VersionDetails] = None
        self._error: Optional[BaseException] = None

    def details(self) -> VersionDetails:
        """Fetch and parse the details document on first call; later calls are free.

        Safe to call from several threads: exactly one of them fetches, the others
        wait and observe the same result. A failure is remembered and raised again.
        """
        if self._state is _DetailsState.RESOLVED:
            return self._details
        with self._lock:
            if self._state is _DetailsState.RESOLVED:
                return self._details
            if self._state is _DetailsState.FAILED:
                raise self._error
            self._state = _DetailsState.RESOLVING
            log.debug(f"Resolving details for {self.id} from {self.details_url}")
            try:
                details = VersionDetails.read(self, self._fetch_details(self.details_url))
            except MalformedDocumentError as e:
                if e.source is None:
                    e.source = self.details_url
                self._error = e
                self._state = _DetailsState.FAILED
                raise
            except Exception as e:
                self._error = e
                self._state = _DetailsState.FAILED
                raise
            self._details = details
            self._state = _DetailsState.RESOLVED
            return details

    @property
    def details_resolved(self) -> bool:
        return self._state is _DetailsState.RESOLVED

    def id_for(self, side: GameSide) -> str:
        """Version id used by side specific artifacts such as intermediary."""
        return self.id if self.details().shared_mappings else f"{self.id}-{side.side_id}"

    def __repr__(self) -> str:
        return f"<Version {self.id} ({self.type})>"


class VersionManifest:
    def __init__(self, latest_release: Optional[Version], latest_snapshot: Optional[Version],
                 versions: Dict[str, Version]) -> None:
        self.latest_release = latest_release
        self.latest_snapshot = latest_snapshot
        self._versions = versions

    @classmethod
    def read(cls, document: Any, fetch_details: FetchDetails) -> "VersionManifest":
        if not isinstance(document, dict):
            raise MalformedDocumentError(f"Version manifest must be an object, got {json_type_name(document)}",
                                         expected="object")

        latest_release = latest_snapshot = None
        if "latest" in document:
            latest = expect_type(document["latest"], dict, "latest", "Version manifest")
            if "release" in latest:
                latest_release = expect_type(latest["release"], str, "release", "Latest versions")
            if "snapshot" in latest:
                latest_snapshot = expect_type(latest["snapshot"], str, "snapshot", "Latest versions")

        # dict keeps document order; a repeated id keeps its first position
        versions: Dict[str, Version] = {}
        for entry in require(document, "versions", list, "Version manifest"):
            version = Version(
                id=require(entry, "id", str, "Version entry"),
                type=require(entry, "type", str, "Version entry"),
                url=require(entry, "url", str, "Version entry"),
                details_url=require(entry, "details", str, "Version entry"),
                fetch_details=fetch_details,
                # not present for every old version, only informational
                time=entry.get("time"),
                release_time=entry.get("releaseTime"),
            )
            if version.id in versions:
                log.warning(f"Version manifest lists {version.id} more than once, using the last entry")
            versions[version.id] = version

        return cls(versions.get(latest_release), versions.get(latest_snapshot), versions)

    def get_version(self, id: str) -> Optional[Version]:
        return self._versions.get(id)

    @property
    def versions(self) -> Dict[str, Version]:
        return dict(self._versions)

    def __contains__(self, id: object) -> bool:
        return id in self._versions

    def __iter__(self) -> Iterator[Version]:
        return iter(list(self._versions.values()))

    def __len__(self) -> int:
        return len(self._versions)


def manifest_endpoint(registry: EndpointRegistry, fetch_details: FetchDetails) -> Endpoint[VersionManifest]:
    """Endpoint of the version manifest, relative to ``MANIFEST_BASE_URL``."""
    return registry.get_or_create(MANIFEST_PATH, lambda raw: VersionManifest.read(load_json(raw), fetch_details))
