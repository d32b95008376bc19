"""Terraform state lookups as a template function.

    loader.funcs(tfstate.load("file://./terraform.tfstate"))

    aws_account_id: {{ tfstate("data.aws_caller_identity.current.account_id") }}
    log_group: {{ tfstate("aws_cloudwatch_log_group.main.name") }}
    bucket: {{ tfstate("module.logs.aws_s3_bucket.this['app'].bucket") }}
"""

import json
import logging
import re
from typing import Any, Callable, Optional, Union
from urllib.parse import unquote, urlparse

import requests

from ..errors import DecodeError, SourceReadError

logger = logging.getLogger(__name__)

_TOKEN_RE = re.compile(
    r"""\s*(?:
        (?P<name>[A-Za-z_][\w-]*)
      | \[\s*(?P<index>-?\d+)\s*\]
      | \[\s*(?P<key>"(?:[^"\\]|\\.)*")\s*\]
      | (?P<dot>\.)
    )""",
    re.VERBOSE,
)

Step = Union[str, int]


class StateLookupError(LookupError):
    """Exception raised when an address does not resolve in the state."""

    pass


class AddressError(ValueError):
    """Exception raised for a malformed resource address."""

    pass


def parse_address(address: str) -> list[tuple[str, Step]]:
    """Split an address into ``("name", str)`` and ``("index", int|str)`` steps."""
    steps: list[tuple[str, Step]] = []
    pos = 0
    expect_name = True
    while pos < len(address):
        match = _TOKEN_RE.match(address, pos)
        if not match or match.end() == pos:
            raise AddressError(f"invalid address {address!r} at offset {pos}")
        pos = match.end()

        if match.group("dot"):
            if expect_name:
                raise AddressError(f"invalid address {address!r} at offset {pos}")
            expect_name = True
        elif match.group("name"):
            if not expect_name:
                raise AddressError(f"invalid address {address!r} at offset {pos}")
            steps.append(("name", match.group("name")))
            expect_name = False
        elif expect_name:
            raise AddressError(f"invalid address {address!r} at offset {pos}")
        elif match.group("index") is not None:
            steps.append(("index", int(match.group("index"))))
        else:
            steps.append(("index", json.loads(match.group("key"))))

    if not steps or expect_name:
        raise AddressError(f"invalid address {address!r}")
    return steps


def _format_key(key: Step) -> str:
    return f"[{key}]" if isinstance(key, int) else f"[{json.dumps(key)}]"


class State:
    """A loaded Terraform state snapshot."""

    def __init__(self, document: dict[str, Any]):
        self.document = document
        self.resources = document.get("resources") or []
        self.outputs = document.get("outputs") or {}

    def lookup(self, address: str) -> Any:
        """Resolve an address to a value.

        Raises:
            StateLookupError: If nothing in the state matches
        """
        steps = parse_address(address)

        if steps[0] == ("name", "output"):
            if len(steps) < 2 or steps[1][0] != "name" or steps[1][1] not in self.outputs:
                raise StateLookupError(f"{address} is not found in tfstate")
            return _walk(self.outputs[steps[1][1]].get("value"), steps[2:], address)

        module, rest = self._module_prefix(steps)
        mode = "managed"
        if rest and rest[0] == ("name", "data"):
            mode = "data"
            rest = rest[1:]

        if len(rest) < 2 or rest[0][0] != "name" or rest[1][0] != "name":
            raise StateLookupError(f"{address} is not found in tfstate")
        rtype, rname = rest[0][1], rest[1][1]
        rest = rest[2:]

        index_key: Optional[Step] = None
        if rest and rest[0][0] == "index":
            index_key = rest[0][1]
            rest = rest[1:]

        instance = self._find_instance(module, mode, rtype, rname, index_key)
        if instance is None:
            raise StateLookupError(f"{address} is not found in tfstate")
        return _walk(instance.get("attributes"), rest, address)

    def _module_prefix(self, steps: list) -> tuple[Optional[str], list]:
        parts = []
        while len(steps) >= 2 and steps[0] == ("name", "module") and steps[1][0] == "name":
            part = f"module.{steps[1][1]}"
            steps = steps[2:]
            if steps and steps[0][0] == "index":
                part += _format_key(steps[0][1])
                steps = steps[1:]
            parts.append(part)
        return (".".join(parts) or None), steps

    def _find_instance(
        self,
        module: Optional[str],
        mode: str,
        rtype: str,
        rname: str,
        index_key: Optional[Step],
    ) -> Optional[dict[str, Any]]:
        for resource in self.resources:
            if (
                resource.get("module") != module
                or resource.get("mode", "managed") != mode
                or resource.get("type") != rtype
                or resource.get("name") != rname
            ):
                continue
            for instance in resource.get("instances") or []:
                if instance.get("index_key") == index_key:
                    return instance
        return None


def _walk(value: Any, steps: list, address: str) -> Any:
    for kind, step in steps:
        if kind == "name" or isinstance(step, str):
            if not isinstance(value, dict) or step not in value:
                raise StateLookupError(f"{address} is not found in tfstate")
            value = value[step]
        else:
            if not isinstance(value, list) or not -len(value) <= step < len(value):
                raise StateLookupError(f"{address} is not found in tfstate")
            value = value[step]
    if value is None:
        raise StateLookupError(f"{address} is not found in tfstate")
    return value


def to_string(value: Any) -> str:
    """Strings as-is, everything else JSON-encoded."""
    if isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"))


def read_state(state_url: str, timeout: float = 30.0) -> State:
    """Read a state snapshot from a path, ``file://`` URL or ``http(s)://`` URL.

    Raises:
        SourceReadError: If the snapshot cannot be read
        DecodeError: If the snapshot is not a JSON object
    """
    parsed = urlparse(state_url)
    try:
        if parsed.scheme in ("http", "https"):
            response = requests.get(state_url, timeout=timeout)
            response.raise_for_status()
            content = response.text
        elif parsed.scheme in ("", "file"):
            path = unquote(parsed.netloc + parsed.path) if parsed.scheme else state_url
            with open(path, encoding="utf-8") as f:
                content = f.read()
        else:
            raise SourceReadError(
                f"failed to read tfstate: unsupported scheme {parsed.scheme}", state_url
            )
    except (OSError, requests.RequestException) as e:
        raise SourceReadError(f"failed to read tfstate: {e}", state_url) from e

    try:
        document = json.loads(content)
    except ValueError as e:
        raise DecodeError(f"failed to read tfstate: {e}", state_url) from e
    if not isinstance(document, dict):
        raise DecodeError("failed to read tfstate: not a state document", state_url)

    logger.info(f"Loaded tfstate from {state_url}")
    return State(document)


def funcs(state: State, missing_ok: bool = False) -> dict[str, Callable[[str], str]]:
    """Build the ``tfstate`` template function for a loaded state."""

    def tfstate(address: str) -> str:
        address = address.replace("'", '"')
        try:
            return to_string(state.lookup(address))
        except (StateLookupError, AddressError):
            if missing_ok:
                logger.debug(f"{address} is not found in tfstate")
                return ""
            raise

    return {"tfstate": tfstate}


def load(state_url: str, missing_ok: bool = False) -> dict[str, Callable[[str], str]]:
    """Read a state snapshot and return template functions for ``Loader.funcs()``.

    Args:
        state_url: Path or URL of the state file
        missing_ok: Render unknown addresses as "" instead of failing
    """
    return funcs(read_state(state_url), missing_ok=missing_ok)
