"""Configuration loader instances.

A ``Loader`` owns its template functions, data context, delimiters and
unknown-field policy, so independently configured loaders can live side by
side in one process.

Example:
    loader = Loader()
    loader.data({"region": "ap-northeast-1"})
    conf = AppConfig()
    loader.load_with_env(conf, "config.yml", "config_local.yml")
"""

import logging
import os
import threading
from collections.abc import Mapping
from typing import Any, Callable, NamedTuple, Optional, Union

from .errors import ConfigError
from .loader.file import ConfigFormat, parse_content, read_source
from .loader.funcs import builtin_functions
from .loader.merger import decode_into
from .loader.template import TemplateExpander

logger = logging.getLogger(__name__)

Source = Union[str, "os.PathLike[str]"]
Buffer = Union[bytes, str]


class _Snapshot(NamedTuple):
    expander: TemplateExpander
    data: dict[str, Any]
    disallow_unknown_fields: bool


class Loader:
    """Loads configuration sources into a target value by sequential overlay.

    Every ``load*`` method reads its sources in order and decodes each one
    into ``conf``, so later sources override earlier ones. The ``with_env``
    variants expand each source as a template first. Loading stops at the
    first failing source; the raised ``ConfigError`` keeps its class and
    carries the failing source in ``err.source``.
    """

    def __init__(
        self,
        left_delim: str = "",
        right_delim: str = "",
        disallow_unknown_fields: bool = False,
        encoding: str = "utf-8",
    ):
        """Initialize the loader.

        Args:
            left_delim: Left template delimiter ("" for the default ``{{``)
            right_delim: Right template delimiter ("" for the default ``}}``)
            disallow_unknown_fields: Reject source keys unknown to the target
            encoding: Source encoding
        """
        self.encoding = encoding
        self._lock = threading.Lock()
        self._functions: dict[str, Callable[..., Any]] = builtin_functions()
        self._data: dict[str, Any] = {}
        self._left_delim = left_delim
        self._right_delim = right_delim
        self._disallow_unknown_fields = disallow_unknown_fields
        self._expander: Optional[TemplateExpander] = None

    # Registration

    def funcs(self, additions: Mapping[str, Callable[..., Any]]) -> None:
        """Add template functions; an existing name is overwritten."""
        with self._lock:
            self._functions.update(additions)
            self._expander = None
        logger.debug(f"Registered template functions: {', '.join(additions)}")

    def data(self, additions: Mapping[str, Any]) -> None:
        """Add values to the template data context; an existing key is overwritten.

        A key named like a registered function is hidden by that function.
        """
        with self._lock:
            self._data.update(additions)
            shadowed = sorted(set(additions) & set(self._functions))
        if shadowed:
            logger.warning(
                f"Template data keys hidden by functions of the same name: "
                f"{', '.join(shadowed)}"
            )
        logger.debug(f"Registered template data: {', '.join(additions)}")

    def delims(self, left: str, right: str) -> None:
        """Set the template action delimiters. Empty strings restore the defaults."""
        with self._lock:
            self._left_delim = left
            self._right_delim = right
            self._expander = None

    def disallow_unknown_fields(self, enabled: bool = True) -> None:
        """Make decoding fail on source keys that the target does not declare."""
        with self._lock:
            self._disallow_unknown_fields = enabled

    # YAML

    def load(self, conf: Any, *paths: Source) -> None:
        """Load YAML files into ``conf``."""
        self._load_paths(conf, paths, ConfigFormat.YAML, expand=False)

    def load_bytes(self, conf: Any, *srcs: Buffer) -> None:
        """Load YAML buffers into ``conf``."""
        self._load_buffers(conf, srcs, ConfigFormat.YAML, expand=False)

    def load_with_env(self, conf: Any, *paths: Source) -> None:
        """Expand and load YAML files into ``conf``.

        ``{{ env("ENV") }}`` is replaced with the value of ``ENV``;
        ``{{ env("ENV", "default") }}`` falls back to ``default``.
        """
        self._load_paths(conf, paths, ConfigFormat.YAML, expand=True)

    def load_with_env_bytes(self, conf: Any, *srcs: Buffer) -> None:
        """Expand and load YAML buffers into ``conf``."""
        self._load_buffers(conf, srcs, ConfigFormat.YAML, expand=True)

    # JSON

    def load_json(self, conf: Any, *paths: Source) -> None:
        """Load JSON files into ``conf``."""
        self._load_paths(conf, paths, ConfigFormat.JSON, expand=False)

    def load_json_bytes(self, conf: Any, *srcs: Buffer) -> None:
        """Load JSON buffers into ``conf``."""
        self._load_buffers(conf, srcs, ConfigFormat.JSON, expand=False)

    def load_with_env_json(self, conf: Any, *paths: Source) -> None:
        """Expand and load JSON files into ``conf``."""
        self._load_paths(conf, paths, ConfigFormat.JSON, expand=True)

    def load_with_env_json_bytes(self, conf: Any, *srcs: Buffer) -> None:
        """Expand and load JSON buffers into ``conf``."""
        self._load_buffers(conf, srcs, ConfigFormat.JSON, expand=True)

    # TOML

    def load_toml(self, conf: Any, *paths: Source) -> None:
        """Load TOML files into ``conf``."""
        self._load_paths(conf, paths, ConfigFormat.TOML, expand=False)

    def load_toml_bytes(self, conf: Any, *srcs: Buffer) -> None:
        """Load TOML buffers into ``conf``."""
        self._load_buffers(conf, srcs, ConfigFormat.TOML, expand=False)

    def load_with_env_toml(self, conf: Any, *paths: Source) -> None:
        """Expand and load TOML files into ``conf``."""
        self._load_paths(conf, paths, ConfigFormat.TOML, expand=True)

    def load_with_env_toml_bytes(self, conf: Any, *srcs: Buffer) -> None:
        """Expand and load TOML buffers into ``conf``."""
        self._load_buffers(conf, srcs, ConfigFormat.TOML, expand=True)

    # Expansion only

    def read_with_env(self, path: Source) -> bytes:
        """Read a file and return it with templates expanded."""
        snapshot = self._snapshot()
        try:
            return snapshot.expander.expand(read_source(path), snapshot.data)
        except ConfigError as e:
            _annotate(e, os.fspath(path))
            raise

    def read_with_env_bytes(self, src: Buffer) -> bytes:
        """Return ``src`` with templates expanded."""
        snapshot = self._snapshot()
        return snapshot.expander.expand(self._to_bytes(src), snapshot.data)

    # Internals

    def _snapshot(self) -> _Snapshot:
        with self._lock:
            if self._expander is None:
                self._expander = TemplateExpander(
                    self._functions,
                    self._left_delim,
                    self._right_delim,
                    encoding=self.encoding,
                )
            return _Snapshot(
                self._expander, dict(self._data), self._disallow_unknown_fields
            )

    def _load_paths(
        self, conf: Any, paths: tuple, format: ConfigFormat, expand: bool
    ) -> None:
        snapshot = self._snapshot()
        for path in paths:
            name = os.fspath(path)
            try:
                data = read_source(path)
                self._load_one(conf, data, format, expand, snapshot)
            except ConfigError as e:
                _annotate(e, name)
                raise
            logger.debug(f"Loaded {name} ({format.value})")

        if len(paths) > 1:
            logger.info(f"Merged {len(paths)} {format.value} sources")

    def _load_buffers(
        self, conf: Any, srcs: tuple, format: ConfigFormat, expand: bool
    ) -> None:
        snapshot = self._snapshot()
        for i, src in enumerate(srcs):
            try:
                self._load_one(conf, self._to_bytes(src), format, expand, snapshot)
            except ConfigError as e:
                _annotate(e, f"<bytes #{i}>")
                raise

    def _load_one(
        self,
        conf: Any,
        data: bytes,
        format: ConfigFormat,
        expand: bool,
        snapshot: _Snapshot,
    ) -> None:
        if expand:
            data = snapshot.expander.expand(data, snapshot.data)
        decoded = parse_content(data, format, self.encoding)
        decode_into(conf, decoded, snapshot.disallow_unknown_fields)

    def _to_bytes(self, src: Buffer) -> bytes:
        if isinstance(src, str):
            return src.encode(self.encoding)
        return bytes(src)


def _annotate(err: ConfigError, source: str) -> None:
    """Record ``source`` on ``err`` unless an inner layer already did."""
    if err.source is None:
        err.source = source
