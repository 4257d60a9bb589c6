import logging
from typing import Any, Dict, Mapping

log = logging.getLogger(__name__)


def replace_text(value: str, replacements: Mapping[str, str]) -> str:
    """
    Replaces all occurrences of the given substrings, in the order given.
    Does not use regular expressions.

    Args:
        value: The string to perform replacements on.
        replacements: Substring to find -> string to put in its place.

    Returns:
        The string with all replacements made, or ``value`` unchanged if it
        is not a string.
    """
    if not isinstance(value, str):
        log.warning("replace_text: Input 'value' is not a string. Returning original value.")
        return value

    for search_string, replace_string in replacements.items():
        if not isinstance(search_string, str) or not isinstance(replace_string, str):
            raise TypeError(f"replace_text: replacement for '{search_string}' must map a string to a string")
        value = value.replace(search_string, replace_string)
    return value


def fill_template(template: str, variables: Mapping[str, str]) -> str:
    """Replaces ``${name}`` placeholders with ``variables[name]``."""
    return replace_text(template, {f"${{{name}}}": value for name, value in variables.items()})


def fill_document(document: Any, variables: Mapping[str, str]) -> Any:
    """``fill_template`` applied to every string inside a JSON document (keys included)."""
    if isinstance(document, str):
        return fill_template(document, variables)
    if isinstance(document, list):
        return [fill_document(item, variables) for item in document]
    if isinstance(document, dict):
        filled: Dict[str, Any] = {}
        for key, item in document.items():
            filled[fill_template(key, variables)] = fill_document(item, variables)
        return filled
    return document
