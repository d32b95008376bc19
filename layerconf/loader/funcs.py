"""Built-in template functions.

These are seeded into every ``Loader`` and may be overwritten by name through
``Loader.funcs()``.
"""

import json
import os
from typing import Any, Callable

from ..errors import RequiredVariableMissingError


def env(*keys: str) -> str:
    """Return the first non-empty environment variable among ``keys``.

    When none of them is set to a non-empty value the last key itself is
    returned, so ``{{ env("DB_NAME", "example_dev") }}`` falls back to the
    literal ``example_dev``.
    """
    value = ""
    for key in keys:
        value = os.environ.get(key, "")
        if value != "":
            return value
        value = key
    return value


def must_env(key: str) -> str:
    """Return the environment variable ``key``, which must be defined.

    An empty value is returned as is.

    Raises:
        RequiredVariableMissingError: If the variable is not defined at all
    """
    try:
        return os.environ[key]
    except KeyError:
        raise RequiredVariableMissingError(key) from None


def json_escape(value: Any) -> str:
    """Encode ``value`` as a JSON string literal without the outer quotes."""
    encoded = json.dumps(str(value), ensure_ascii=False)
    return encoded[1:-1].replace("\u2028", "\\u2028").replace("\u2029", "\\u2029")


def builtin_functions() -> dict[str, Callable[..., Any]]:
    """Return a fresh mapping of the built-in template functions."""
    return {
        "env": env,
        "must_env": must_env,
        "json_escape": json_escape,
    }
