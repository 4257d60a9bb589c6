import logging
from typing import Any, Dict, List, Optional

log = logging.getLogger(__name__)


def merge_manifest(
    version_json: Dict[str, Any],
    manifest: Dict[str, Any],
    conflicts: Optional[List[str]] = None,
    _path: str = "",
) -> Dict[str, Any]:
    """Merges a manifest fragment into a version json, in place.

    Keys missing from ``version_json`` are copied over. Keys present in both are
    left alone when the values are equal, merged recursively when both values are
    objects, and otherwise the value already in ``version_json`` wins. Arrays are
    never merged element by element.

    Args:
        version_json: The primary document; mutated and returned.
        manifest: The fragment to fold in. Not modified.
        conflicts: If given, the dotted key path of every conflict the primary
                   document won is appended to it.

    Returns:
        ``version_json``
    """
    for key, value in manifest.items():
        key_path = f"{_path}.{key}" if _path else key
        if key not in version_json:
            version_json[key] = value
            continue

        current = version_json[key]
        if current == value:
            continue
        if isinstance(current, dict) and isinstance(value, dict):
            merge_manifest(current, value, conflicts, key_path)
            continue

        log.debug(f"Keeping existing value for '{key_path}', fragment value differs")
        if conflicts is not None:
            conflicts.append(key_path)

    return version_json
