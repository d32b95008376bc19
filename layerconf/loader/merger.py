"""In-place overlay of decoded data onto a target value.

Each source is decoded straight into the value populated by the sources
before it:

- mappings: keys are added or overwritten, values are replaced
- pydantic models and dataclasses: fields present in the source are
  overwritten; nested models/dataclasses are overlaid field by field and
  dict-typed fields are merged by key
- lists: replaced wholesale

Scalar values are validated against the field's annotation with pydantic, so
a model field typed ``Duration`` accepts ``"0.5s"``.
"""

import dataclasses
import logging
import typing
from collections.abc import Mapping, MutableMapping, MutableSequence
from functools import lru_cache
from typing import Any, Annotated

from pydantic import BaseModel, TypeAdapter, ValidationError

from ..errors import DecodeError

logger = logging.getLogger(__name__)


def decode_into(target: Any, data: Any, disallow_unknown_fields: bool = False) -> None:
    """Overlay decoded ``data`` onto ``target`` in place.

    Args:
        target: Mapping, sequence, pydantic model or dataclass instance
        data: Plain decoded values (as produced by a format parser)
        disallow_unknown_fields: Reject keys with no matching field

    Raises:
        DecodeError: If ``data`` does not fit ``target``
    """
    if data is None:
        return
    _overlay(target, data, disallow_unknown_fields, "")


def _overlay(target: Any, data: Any, strict: bool, path: str) -> None:
    if isinstance(target, BaseModel):
        _overlay_model(target, data, strict, path)
    elif dataclasses.is_dataclass(target) and not isinstance(target, type):
        _overlay_dataclass(target, data, strict, path)
    elif isinstance(target, MutableMapping):
        _require_mapping(data, path, type(target).__name__)
        for key, value in data.items():
            target[key] = value
    elif isinstance(target, MutableSequence):
        if not isinstance(data, list):
            raise DecodeError(
                f"cannot unmarshal {_kind(data)} into {type(target).__name__}{_at(path)}"
            )
        target[:] = data
    else:
        raise DecodeError(f"cannot decode into {type(target).__name__}{_at(path)}")


def _overlay_model(model: BaseModel, data: Any, strict: bool, path: str) -> None:
    model_cls = type(model)
    _require_mapping(data, path, model_cls.__name__)

    keys = _model_keys(model_cls)
    for key, value in data.items():
        name = keys.get(key)
        if name is None:
            if strict:
                raise DecodeError(f'unknown field "{key}"{_at(path)}')
            logger.debug(f"Ignoring unknown field {_join(path, key)}")
            continue

        field_path = _join(path, key)
        if _overlay_nested(getattr(model, name), value, strict, field_path):
            continue
        validated = _validate(_model_field_adapter(model_cls, name), value, field_path)
        setattr(model, name, _merge_typed_dict(getattr(model, name), validated))


def _overlay_dataclass(obj: Any, data: Any, strict: bool, path: str) -> None:
    cls = type(obj)
    _require_mapping(data, path, cls.__name__)

    names = {f.name for f in dataclasses.fields(obj)}
    for key, value in data.items():
        if key not in names:
            if strict:
                raise DecodeError(f'unknown field "{key}"{_at(path)}')
            logger.debug(f"Ignoring unknown field {_join(path, key)}")
            continue

        field_path = _join(path, key)
        if _overlay_nested(getattr(obj, key), value, strict, field_path):
            continue
        validated = _validate(_dataclass_field_adapter(cls, key), value, field_path)
        setattr(obj, key, _merge_typed_dict(getattr(obj, key), validated))


def _overlay_nested(current: Any, value: Any, strict: bool, path: str) -> bool:
    """Overlay onto an existing nested struct. Returns False if not applicable."""
    if not isinstance(value, Mapping):
        return False
    if isinstance(current, BaseModel) or (
        dataclasses.is_dataclass(current) and not isinstance(current, type)
    ):
        _overlay(current, value, strict, path)
        return True
    return False


def _validate(adapter: TypeAdapter, value: Any, path: str) -> Any:
    try:
        validated = adapter.validate_python(value)
    except ValidationError as e:
        errors = "; ".join(err["msg"] for err in e.errors())
        raise DecodeError(f"cannot unmarshal {_kind(value)} into {path}: {errors}") from e
    return validated


def _merge_typed_dict(current: Any, validated: Any) -> Any:
    if isinstance(current, dict) and isinstance(validated, dict):
        current.update(validated)
        return current
    return validated


@lru_cache(maxsize=None)
def _model_keys(model_cls: type[BaseModel]) -> dict[str, str]:
    keys = {}
    for name, info in model_cls.model_fields.items():
        keys[name] = name
        if info.alias:
            keys[info.alias] = name
        if isinstance(info.validation_alias, str):
            keys[info.validation_alias] = name
    return keys


@lru_cache(maxsize=None)
def _model_field_adapter(model_cls: type[BaseModel], name: str) -> TypeAdapter:
    info = model_cls.model_fields[name]
    annotation = info.annotation
    if info.metadata:
        annotation = Annotated[(annotation, *info.metadata)]
    return TypeAdapter(annotation)


@lru_cache(maxsize=None)
def _dataclass_field_adapter(cls: type, name: str) -> TypeAdapter:
    hints = typing.get_type_hints(cls, include_extras=True)
    return TypeAdapter(hints.get(name, Any))


def _require_mapping(data: Any, path: str, into: str) -> None:
    if not isinstance(data, Mapping):
        raise DecodeError(f"cannot unmarshal {_kind(data)} into {into}{_at(path)}")


def _kind(value: Any) -> str:
    if isinstance(value, Mapping):
        return "mapping"
    if isinstance(value, list):
        return "list"
    return type(value).__name__


def _join(path: str, key: Any) -> str:
    return f"{path}.{key}" if path else str(key)


def _at(path: str) -> str:
    return f" at {path}" if path else ""
