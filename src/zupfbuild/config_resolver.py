"""
Per-song render configuration.

The final configuration handed to the renderer is built from two sources:

- the project configuration, with the ``#{PREFIX}``, ``#{the_index}`` and
  ``#{sampleId}`` placeholders substituted, and
- an optional JSON object embedded in the ABC file after the
  ``%%%%zupfnoter.config`` marker.

The project configuration wins: values from the file only fill keys the
project does not define. Existing projects rely on this precedence. A key
the project sets to an empty or false value (``""``, ``0``, ``false``,
``null``) is defined and is not filled from the file.
"""

from __future__ import annotations

import copy
import json
from typing import Any, Dict, Mapping

from zupfbuild.errors import ConfigError

CONFIG_MARKER = "%%%%zupfnoter.config"

PREFIX_PLACEHOLDER = "#{PREFIX}"
INDEX_PLACEHOLDER = "#{the_index}"
SAMPLE_ID_PLACEHOLDER = "#{sampleId}"

_EXCERPT_CHARS = 200


def _excerpt(text: str) -> str:
    text = text.strip()
    if len(text) <= _EXCERPT_CHARS:
        return text
    return text[:_EXCERPT_CHARS] + "..."


def substitute_placeholders(
    project_config: Mapping[str, Any],
    short_name: str,
    song_index: int,
    sample_id: str = "",
) -> Dict[str, Any]:
    """Replace the placeholders in the serialized project configuration.

    Args:
        project_config: Stored project configuration.
        short_name: Replaces ``#{PREFIX}``.
        song_index: Replaces ``#{the_index}`` as two zero-padded digits.
        sample_id: Replaces ``#{sampleId}``; may be empty.

    Returns:
        The re-parsed base configuration.

    Raises:
        ConfigError: If the substituted text is no longer a JSON object.
    """
    text = json.dumps(dict(project_config), ensure_ascii=False)
    text = text.replace(PREFIX_PLACEHOLDER, short_name)
    text = text.replace(INDEX_PLACEHOLDER, f"{song_index:02d}")
    text = text.replace(SAMPLE_ID_PLACEHOLDER, sample_id)

    try:
        base = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ConfigError(
            f"project config is not valid JSON after placeholder substitution "
            f"({exc.msg} at position {exc.pos}): {_excerpt(text)}",
            stage="config",
        ) from exc
    return base


def extract_file_config(source: str) -> Dict[str, Any]:
    """Extract the configuration embedded in an ABC file.

    Everything following the marker is parsed as one JSON object; trailing
    whitespace is ignored. A file without the marker has an empty config.

    Raises:
        ConfigError: If the embedded block is not a JSON object.
    """
    pos = source.find(CONFIG_MARKER)
    if pos == -1:
        return {}

    block = source[pos + len(CONFIG_MARKER):].strip()
    try:
        parsed, _ = json.JSONDecoder().raw_decode(block)
    except json.JSONDecodeError as exc:
        raise ConfigError(
            f"embedded file config is not valid JSON ({exc.msg} at position "
            f"{exc.pos}): {_excerpt(block)}",
            stage="config",
        ) from exc

    if not isinstance(parsed, dict):
        raise ConfigError(
            f"embedded file config must be a JSON object, got "
            f"{type(parsed).__name__}: {_excerpt(block)}",
            stage="config",
        )
    return parsed


def merge_missing(base: Dict[str, Any], extra: Mapping[str, Any]) -> Dict[str, Any]:
    """Merge ``extra`` into ``base`` without overriding existing keys.

    Keys present in ``base`` keep their value. Nested mappings present on
    both sides are merged with the same rule. ``base`` is modified in place
    and returned.
    """
    for key, value in extra.items():
        if key not in base:
            base[key] = copy.deepcopy(value)
        elif isinstance(base[key], dict) and isinstance(value, Mapping):
            merge_missing(base[key], value)
    return base


def resolve_config(
    project_config: Mapping[str, Any],
    song_index: int,
    short_name: str,
    sample_id: str,
    source: str,
) -> Dict[str, Any]:
    """Derive the final render configuration for one song."""
    base = substitute_placeholders(project_config, short_name, song_index, sample_id)
    file_config = extract_file_config(source)
    return merge_missing(base, file_config)
