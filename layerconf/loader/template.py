"""Template expansion for configuration sources.

Sources are rendered with Jinja2. Registered functions are available both as
globals and as filters, and the loader's data context is the root namespace:

    domain: {{ env("DOMAIN", "example.com") }}
    password: {{ must_env("DB_PASSWORD") | json_escape }}
    cluster: {{ ecsTaskMetadata.Cluster }}

A registered function always wins over a data key of the same name.

With custom delimiters, block and comment tags are derived from them
(``<%% if x %%>``, ``<%# note #%>`` for ``<%``/``%>``), so the Jinja2 default
tags are plain text.
"""

import logging
from collections.abc import Mapping
from typing import Any, Callable, Optional

from jinja2 import Environment, StrictUndefined, TemplateError, TemplateSyntaxError

from ..errors import (
    RequiredVariableMissingError,
    TemplateExecutionError,
    TemplateParseError,
)

logger = logging.getLogger(__name__)

DEFAULT_LEFT_DELIM = "{{"
DEFAULT_RIGHT_DELIM = "}}"


class TemplateExpander:
    """Renders raw source bytes with a fixed set of functions and delimiters."""

    def __init__(
        self,
        functions: Mapping[str, Callable[..., Any]],
        left_delim: str = "",
        right_delim: str = "",
        encoding: str = "utf-8",
    ):
        """Initialize the expander.

        Args:
            functions: Template functions by name
            left_delim: Left action delimiter ("" for the Jinja2 default)
            right_delim: Right action delimiter ("" for the Jinja2 default)
            encoding: Encoding of source bytes
        """
        self.encoding = encoding
        self.functions = dict(functions)
        self.left_delim = left_delim or DEFAULT_LEFT_DELIM
        self.right_delim = right_delim or DEFAULT_RIGHT_DELIM

        # Jinja2 normalizes line endings to one sequence per environment
        self._environments = {
            newline: self._build_environment(newline) for newline in ("\n", "\r\n")
        }

    def _build_environment(self, newline: str) -> Environment:
        options: dict[str, Any] = {
            "variable_start_string": self.left_delim,
            "variable_end_string": self.right_delim,
        }
        defaults = (DEFAULT_LEFT_DELIM, DEFAULT_RIGHT_DELIM)
        if (self.left_delim, self.right_delim) != defaults:
            options.update(
                block_start_string=self.left_delim + "%",
                block_end_string="%" + self.right_delim,
                comment_start_string=self.left_delim + "#",
                comment_end_string="#" + self.right_delim,
            )

        env = Environment(
            undefined=StrictUndefined,
            keep_trailing_newline=True,
            autoescape=False,
            newline_sequence=newline,
            **options,
        )
        env.globals.update(self.functions)
        env.filters.update(self.functions)
        return env

    def expand(self, src: bytes, data: Optional[Mapping[str, Any]] = None) -> bytes:
        """Expand ``src`` with ``data`` as the root context.

        CRLF line endings are kept when the source uses them.

        Raises:
            TemplateParseError: If ``src`` is not a valid template
            TemplateExecutionError: If rendering fails
            RequiredVariableMissingError: If ``must_env`` hit an undefined variable
        """
        try:
            text = src.decode(self.encoding)
        except UnicodeDecodeError as e:
            raise TemplateParseError(f"config parse by template failed: {e}") from e

        env = self._environments["\r\n" if "\r\n" in text else "\n"]
        try:
            template = env.from_string(text)
        except TemplateSyntaxError as e:
            raise TemplateParseError(
                f"config parse by template failed: line {e.lineno}: {e.message}"
            ) from e

        try:
            rendered = template.render({**(data or {}), **self.functions})
        except RequiredVariableMissingError:
            raise
        except TemplateError as e:
            raise TemplateExecutionError(f"template attach failed: {e}") from e
        except Exception as e:
            # a registered function failed
            raise TemplateExecutionError(f"template attach failed: {e}") from e

        logger.debug(f"Expanded template ({len(src)} -> {len(rendered)} chars)")
        return rendered.encode(self.encoding)
