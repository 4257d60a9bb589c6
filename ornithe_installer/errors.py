import enum
from typing import Any, Optional


class ErrorKind(enum.Enum):
    NETWORK = "network"
    MALFORMED_DOCUMENT = "malformed-document"
    LOOKUP = "lookup"
    FILESYSTEM = "filesystem"


class InstallerError(Exception):
    """Base class of every error raised by the installer engine."""

    kind: ErrorKind


class NetworkError(InstallerError):
    kind = ErrorKind.NETWORK

    def __init__(self, url: str, cause: Optional[BaseException] = None) -> None:
        self.url = url
        self.cause = cause
        super().__init__(f"Could not fetch {url}: {cause}")


class MalformedDocumentError(InstallerError):
    """A document was not valid JSON or did not have the expected structure.

    ``key`` and ``expected`` name the offending key and the JSON type that was
    expected there, when known. ``source`` is the URL the document came from.
    """

    kind = ErrorKind.MALFORMED_DOCUMENT

    def __init__(self, message: str, key: Optional[str] = None,
                 expected: Optional[str] = None, source: Optional[str] = None) -> None:
        self.message = message
        self.key = key
        self.expected = expected
        self.source = source
        super().__init__(message)

    def __str__(self) -> str:
        if self.source:
            return f"{self.message} (in {self.source})"
        return self.message


class LookupFailedError(InstallerError):
    kind = ErrorKind.LOOKUP

    def __init__(self, what: str, value: Any) -> None:
        self.what = what
        self.value = value
        super().__init__(f"{what} {value!r} does not exist")


class FilesystemError(InstallerError):
    kind = ErrorKind.FILESYSTEM

    def __init__(self, path: Any, cause: Optional[BaseException] = None) -> None:
        self.path = path
        self.cause = cause
        super().__init__(f"Could not write {path}: {cause}")


# --- Structural helpers used by the document decoders ---

_JSON_TYPE_NAMES = {
    dict: "object",
    list: "array",
    str: "string",
    bool: "boolean",
    int: "number",
    float: "number",
}


def json_type_name(value: Any) -> str:
    if value is None:
        return "null"
    return _JSON_TYPE_NAMES.get(type(value), type(value).__name__)


def expect_type(value: Any, expected: type, key: str, context: str) -> Any:
    """Raise MalformedDocumentError unless ``value`` is an instance of ``expected``."""
    # bool is an int subclass, never accept it where a number is expected
    if not isinstance(value, expected) or (expected is not bool and isinstance(value, bool)):
        name = _JSON_TYPE_NAMES.get(expected, expected.__name__)
        raise MalformedDocumentError(
            f"{context}: \"{key}\" must be a {name}, got {json_type_name(value)}",
            key=key, expected=name,
        )
    return value


def require(document: Any, key: str, expected: type, context: str) -> Any:
    if not isinstance(document, dict):
        raise MalformedDocumentError(f"{context} must be an object, got {json_type_name(document)}",
                                     expected="object")
    if key not in document:
        raise MalformedDocumentError(f"{context}: \"{key}\" is required", key=key,
                                     expected=_JSON_TYPE_NAMES.get(expected, expected.__name__))
    return expect_type(document[key], expected, key, context)
