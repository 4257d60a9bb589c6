"""Endpoint descriptors for the metadata service and the decoders turning their raw
responses into Python values.

An ``Endpoint`` is identified by its path alone: two descriptors with the same path
are equal no matter which decode function they carry, which is what lets the
metadata client fetch each document once.
"""
import json
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Generic, List, NamedTuple, TypeVar

from .enums import GameSide, LoaderType
from .errors import MalformedDocumentError, expect_type, json_type_name, require

log = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Endpoint(Generic[T]):
    path: str
    decode: Callable[[bytes], T] = field(compare=False, hash=False, repr=False)

    def __str__(self) -> str:
        return self.path


class EndpointRegistry:
    """Hands out one ``Endpoint`` instance per path.

    A registry lives as long as the ``MetaClient`` owning it. It only ever grows:
    the first decode function registered for a path is the one that is kept.
    """

    def __init__(self) -> None:
        self._endpoints: Dict[str, Endpoint] = {}
        self._lock = threading.Lock()

    def get_or_create(self, path: str, decode: Callable[[bytes], T]) -> Endpoint[T]:
        with self._lock:
            endpoint = self._endpoints.get(path)
            if endpoint is None:
                endpoint = Endpoint(path, decode)
                self._endpoints[path] = endpoint
            return endpoint

    def __contains__(self, path: str) -> bool:
        return path in self._endpoints

    def __len__(self) -> int:
        return len(self._endpoints)


class Generations(NamedTuple):
    latest: int
    stable: int


# --- Decoders ---

def load_json(raw: bytes) -> Any:
    try:
        return json.loads(raw.decode("utf-8"))
    except UnicodeDecodeError as e:
        raise MalformedDocumentError(f"Document is not valid UTF-8: {e}") from e
    except json.JSONDecodeError as e:
        raise MalformedDocumentError(f"Document is not valid JSON: {e}") from e


def decode_versions(raw: bytes) -> List[str]:
    """Decode a ``[{"version": ...}, ...]`` list, keeping document order."""
    document = load_json(raw)
    if not isinstance(document, list):
        raise MalformedDocumentError(f"Version list must be an array, got {json_type_name(document)}",
                                     expected="array")
    return [require(entry, "version", str, "Version entry") for entry in document]


def decode_intermediary_versions(raw: bytes) -> Dict[str, str]:
    """Returns game version -> maven coordinate of the intermediary artifact."""
    document = load_json(raw)
    if not isinstance(document, list):
        raise MalformedDocumentError(f"Intermediary versions must be an array, got {json_type_name(document)}",
                                     expected="array")
    versions = {}
    for entry in document:
        version = require(entry, "version", str, "Intermediary version entry")
        versions[version] = require(entry, "maven", str, "Intermediary version entry")
    return versions


def decode_generations(raw: bytes) -> Generations:
    document = load_json(raw)
    return Generations(
        latest=require(document, "latest", int, "Intermediary generations"),
        stable=require(document, "stable", int, "Intermediary generations"),
    )


def decode_profile(raw: bytes) -> Dict[str, Any]:
    document = load_json(raw)
    if not isinstance(document, dict):
        raise MalformedDocumentError(f"Profile must be an object, got {json_type_name(document)}",
                                     expected="object")
    if "libraries" in document:
        expect_type(document["libraries"], list, "libraries", "Profile")
    return document


# --- Endpoint factories ---

def generations_endpoint(registry: EndpointRegistry) -> Endpoint[Generations]:
    return registry.get_or_create("/v3/versions/intermediary_generations", decode_generations)


def loader_versions_endpoint(registry: EndpointRegistry, loader_type: LoaderType) -> Endpoint[List[str]]:
    return registry.get_or_create(f"/v3/versions/{loader_type.meta_name}", decode_versions)


def intermediary_versions_endpoint(registry: EndpointRegistry, generation: int) -> Endpoint[Dict[str, str]]:
    return registry.get_or_create(f"/v3/versions/gen{generation}/intermediary", decode_intermediary_versions)


def loader_profile_endpoint(
    registry: EndpointRegistry,
    side: GameSide,
    loader_type: LoaderType,
    game_version: str,
    loader_version: str,
    generation: int,
) -> Endpoint[Dict[str, Any]]:
    """Launch profile of a loader version for one game version.

    ``game_version`` must already be side specific (see ``Version.id_for``).
    """
    path = side.launch_json_endpoint.format(
        generation=generation,
        loader=loader_type.meta_name,
        game_version=game_version,
        loader_version=loader_version,
    )
    return registry.get_or_create(path, decode_profile)
