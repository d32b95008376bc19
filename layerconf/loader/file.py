"""Source reading and format dispatch.

Supports reading configuration from files or in-memory buffers, parsing YAML,
JSON and TOML, and serializing merged configuration back out.
"""

import json
import logging
import os
import tomllib
from collections.abc import Mapping
from enum import Enum
from typing import Any, Union

import yaml
from pydantic import TypeAdapter

from ..errors import DecodeError, EncodeError, SourceReadError

logger = logging.getLogger(__name__)

PathLike = Union[str, "os.PathLike[str]"]


class ConfigFormat(Enum):
    """Supported configuration formats."""

    YAML = "yaml"
    JSON = "json"
    TOML = "toml"


def read_source(path: PathLike) -> bytes:
    """Read a whole source file.

    Raises:
        SourceReadError: If the file cannot be read
    """
    try:
        with open(path, "rb") as f:
            data = f.read()
    except OSError as e:
        raise SourceReadError(f"read failed: {e.strerror or e}", os.fspath(path)) from e

    logger.debug(f"Read {len(data)} bytes from {path}")
    return data


def parse_content(data: bytes, format: ConfigFormat, encoding: str = "utf-8") -> Any:
    """Parse raw bytes in the given format into plain Python values.

    An empty YAML document yields ``None``.

    Raises:
        DecodeError: If the content cannot be parsed
    """
    try:
        text = data.decode(encoding)
        if format == ConfigFormat.YAML:
            return yaml.safe_load(text)
        elif format == ConfigFormat.JSON:
            return json.loads(text)
        elif format == ConfigFormat.TOML:
            return tomllib.loads(text)
    except (UnicodeDecodeError, yaml.YAMLError, ValueError) as e:
        # JSONDecodeError and TOMLDecodeError are both ValueErrors
        raise DecodeError(f"parse failed: {e}") from e

    raise DecodeError(f"Unsupported format: {format}")


def to_plain(value: Any) -> Any:
    """Convert models, dataclasses and durations to JSON-compatible values."""
    try:
        return TypeAdapter(type(value)).dump_python(value, mode="json", by_alias=True)
    except Exception as e:
        raise EncodeError(f"cannot serialize {type(value).__name__}: {e}") from e


def marshal(value: Any) -> bytes:
    """Serialize ``value`` into a YAML document.

    Keys of a plain mapping are sorted; models and dataclasses keep field order.
    """
    plain = to_plain(value)
    try:
        text = yaml.safe_dump(
            plain, sort_keys=isinstance(value, Mapping), allow_unicode=True
        )
    except yaml.YAMLError as e:
        raise EncodeError(f"yaml marshal failed: {e}") from e
    return text.encode("utf-8")


def marshal_json(value: Any) -> bytes:
    """Serialize ``value`` as JSON indented by 2 spaces, sorted like ``marshal``."""
    plain = to_plain(value)
    try:
        text = json.dumps(
            plain, indent=2, ensure_ascii=False, sort_keys=isinstance(value, Mapping)
        )
    except (TypeError, ValueError) as e:
        raise EncodeError(f"json marshal failed: {e}") from e
    return (text + "\n").encode("utf-8")
