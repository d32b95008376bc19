"""Layered configuration loading with template expansion."""

from .errors import (
    ConfigError,
    DecodeError,
    EncodeError,
    ExpansionError,
    MaxRetriesExceededError,
    RequiredVariableMissingError,
    SourceReadError,
    TemplateExecutionError,
    TemplateParseError,
)
from .loader.file import ConfigFormat, marshal, marshal_json
from .manager import Loader
from .types import Duration

__version__ = "0.1.0"

__all__ = [
    "ConfigError",
    "ConfigFormat",
    "DecodeError",
    "Duration",
    "EncodeError",
    "ExpansionError",
    "Loader",
    "MaxRetriesExceededError",
    "RequiredVariableMissingError",
    "SourceReadError",
    "TemplateExecutionError",
    "TemplateParseError",
    "marshal",
    "marshal_json",
]
