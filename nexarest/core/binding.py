"""
Payload binding.

Turns decoded request data (JSON values, or XML element trees converted
with ``xml_to_payload``) into instances of the type a handler asked for.

Example:
    @dataclass
    class Author:
        name: str
        age: int = 0

    bind(Author, {"name": "Ada", "age": 36})     # Author(name="Ada", age=36)
    bind(list[int], [1, 2, 3])                  # [1, 2, 3]

XML carries nothing but text, so ``text=True`` lets scalars be parsed from
strings and lets a lone element stand for a one-element list.
"""

from __future__ import annotations

import dataclasses
import functools
import types
import typing
import xml.etree.ElementTree as ET
from collections.abc import Mapping, Sequence
from datetime import date, datetime, time
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, Type, TypeVar, Union
from uuid import UUID

from nexarest.core.exceptions import DecodeError

T = TypeVar("T")

_TRUE = {"true", "1", "yes", "on"}
_FALSE = {"false", "0", "no", "off"}
_NONE_TYPE = type(None)


def bind(target: Type[T], payload: Any, *, text: bool = False) -> T:
    """
    Bind ``payload`` into ``target``.

    Args:
        target: Any type annotation (dataclass, ``list[X]``, ``Optional[X]``...)
        payload: Decoded data
        text: Scalars arrive as strings (XML)

    Raises:
        DecodeError: The payload does not fit the target
    """
    return _bind(target, payload, "", text)


def _describe(path: str) -> str:
    return f"field '{path}'" if path else "body"


def _bind(target: Any, payload: Any, path: str, text: bool) -> Any:
    if target is Any or target is object:
        return payload

    origin = typing.get_origin(target)
    args = typing.get_args(target)
    if origin is None and target in (list, set, frozenset, tuple, dict):
        origin = target

    if origin in (Union, types.UnionType):
        return _bind_union(args, payload, path, text)

    if origin is typing.Literal:
        for choice in args:
            if payload == choice or (text and str(choice) == payload):
                return choice
        raise DecodeError(f"{_describe(path)}: {payload!r} is not one of {list(args)!r}")

    if payload is None:
        raise DecodeError(f"{_describe(path)}: value is required")

    if origin in (list, set, frozenset) or origin is Sequence:
        item_type = args[0] if args else Any
        items = [_bind(item_type, item, f"{path}.{i}" if path else str(i), text)
                 for i, item in enumerate(_as_sequence(payload, path, text))]
        if origin in (set, frozenset):
            return origin(items)
        return items

    if origin is tuple:
        return _bind_tuple(args, payload, path, text)

    if origin in (dict, Mapping):
        key_type, value_type = args if args else (Any, Any)
        mapping = _as_mapping(payload, path, text)
        return {
            _bind(key_type, key, path, text): _bind(value_type, value, f"{path}.{key}" if path else str(key), text)
            for key, value in mapping.items()
        }

    if isinstance(target, type):
        if dataclasses.is_dataclass(target):
            return _bind_dataclass(target, payload, path, text)
        if issubclass(target, Enum):
            return _bind_enum(target, payload, path, text)
        return _bind_scalar(target, payload, path, text)

    raise DecodeError(f"{_describe(path)}: cannot bind into {target!r}")


def _bind_union(args: tuple, payload: Any, path: str, text: bool) -> Any:
    nullable = _NONE_TYPE in args
    if payload is None or (text and nullable and payload == ""):
        if nullable:
            return None
        raise DecodeError(f"{_describe(path)}: value is required")

    errors = []
    for option in args:
        if option is _NONE_TYPE:
            continue
        try:
            return _bind(option, payload, path, text)
        except DecodeError as exc:
            errors.append(str(exc))
    raise DecodeError(errors[0] if len(errors) == 1 else f"{_describe(path)}: no union member accepts the value")


def _bind_tuple(args: tuple, payload: Any, path: str, text: bool) -> tuple:
    items = _as_sequence(payload, path, text)
    if not args:
        return tuple(items)
    if len(args) == 2 and args[1] is Ellipsis:
        return tuple(_bind(args[0], item, f"{path}.{i}" if path else str(i), text) for i, item in enumerate(items))
    if len(items) != len(args):
        raise DecodeError(f"{_describe(path)}: expected {len(args)} items, got {len(items)}")
    return tuple(
        _bind(arg, item, f"{path}.{i}" if path else str(i), text)
        for i, (arg, item) in enumerate(zip(args, items))
    )


def _as_sequence(payload: Any, path: str, text: bool) -> list:
    if isinstance(payload, (list, tuple)):
        return list(payload)
    if text:
        # A single XML element is a list of one
        return [payload]
    raise DecodeError(f"{_describe(path)}: expected an array, got {type(payload).__name__}")


def _as_mapping(payload: Any, path: str, text: bool) -> Mapping:
    if isinstance(payload, Mapping):
        return payload
    if text and payload == "":
        return {}
    raise DecodeError(f"{_describe(path)}: expected an object, got {type(payload).__name__}")


@functools.lru_cache(maxsize=256)
def _hints(cls: type) -> Dict[str, Any]:
    return typing.get_type_hints(cls)


def _bind_dataclass(cls: type, payload: Any, path: str, text: bool) -> Any:
    mapping = _as_mapping(payload, path, text)
    hints = _hints(cls)
    kwargs: Dict[str, Any] = {}

    for f in dataclasses.fields(cls):
        if not f.init:
            continue
        field_path = f"{path}.{f.name}" if path else f.name
        if f.name in mapping:
            kwargs[f.name] = _bind(hints.get(f.name, Any), mapping[f.name], field_path, text)
        elif f.default is dataclasses.MISSING and f.default_factory is dataclasses.MISSING:
            raise DecodeError(f"{_describe(field_path)}: value is required")

    try:
        return cls(**kwargs)
    except (TypeError, ValueError) as exc:
        raise DecodeError(f"{_describe(path)}: {exc}") from exc


def _bind_enum(cls: Type[Enum], payload: Any, path: str, text: bool) -> Enum:
    try:
        return cls(payload)
    except ValueError:
        pass
    if text:
        for member in cls:
            if str(member.value) == payload or member.name == payload:
                return member
    raise DecodeError(f"{_describe(path)}: {payload!r} is not a valid {cls.__name__}")


def _bind_scalar(cls: type, payload: Any, path: str, text: bool) -> Any:
    try:
        if cls is bool:
            return _to_bool(payload, text)
        if cls is int:
            if isinstance(payload, int) and not isinstance(payload, bool):
                return payload
            if text and isinstance(payload, str):
                return int(payload.strip())
        elif cls is float:
            if isinstance(payload, (int, float)) and not isinstance(payload, bool):
                return float(payload)
            if text and isinstance(payload, str):
                return float(payload.strip())
        elif cls is str:
            if isinstance(payload, str):
                return payload
        elif cls is Decimal:
            if isinstance(payload, (int, float, str)) and not isinstance(payload, bool):
                return Decimal(str(payload))
        elif cls in (datetime, date, time):
            if isinstance(payload, str):
                return cls.fromisoformat(payload.strip())
        elif cls is UUID:
            if isinstance(payload, str):
                return UUID(payload.strip())
        elif isinstance(payload, cls):
            return payload
    except (ValueError, InvalidOperation) as exc:
        raise DecodeError(f"{_describe(path)}: {payload!r} is not a valid {cls.__name__}") from exc

    raise DecodeError(f"{_describe(path)}: expected {cls.__name__}, got {type(payload).__name__}")


def _to_bool(payload: Any, text: bool) -> bool:
    if isinstance(payload, bool):
        return payload
    if text and isinstance(payload, str):
        lowered = payload.strip().lower()
        if lowered in _TRUE:
            return True
        if lowered in _FALSE:
            return False
    raise ValueError(payload)


def xml_to_payload(element: ET.Element) -> Any:
    """
    Convert an element into plain data, ignoring its own tag.

    Leaf elements become their text (``""`` when empty). Elements with
    children become dicts; a tag seen more than once becomes a list.

    Example:
        <article><title>Hi</title><tag>a</tag><tag>b</tag></article>
        -> {"title": "Hi", "tag": ["a", "b"]}
    """
    children = list(element)
    if not children:
        return element.text or ""

    result: Dict[str, Any] = {}
    for child in children:
        value = xml_to_payload(child)
        if child.tag in result:
            existing = result[child.tag]
            if isinstance(existing, list):
                existing.append(value)
            else:
                result[child.tag] = [existing, value]
        else:
            result[child.tag] = value
    return result
