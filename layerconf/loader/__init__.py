"""Configuration loader building blocks.

- ``file``: source reading, format dispatch and marshaling
- ``funcs``: built-in template functions
- ``template``: Jinja2 template expansion
- ``merger``: in-place overlay of decoded data onto the target
"""

from .file import ConfigFormat, marshal, marshal_json, parse_content
from .funcs import builtin_functions, env, json_escape, must_env
from .merger import decode_into
from .template import TemplateExpander

__all__ = [
    "ConfigFormat",
    "TemplateExpander",
    "builtin_functions",
    "decode_into",
    "env",
    "json_escape",
    "marshal",
    "marshal_json",
    "must_env",
    "parse_content",
]
