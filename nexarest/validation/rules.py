"""
nexarest Validation Rules
=========================

Built-in field rules and the rule-string parser.

Rules are written the same way everywhere, as pipe separated strings:

    "required|max_length:100"
    "integer|min:1|max:500"
    "in:draft,published"

or as ``Rule`` instances when a string cannot express them.
"""

from __future__ import annotations

import re
import uuid as uuid_module
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Pattern, Union

RULE_REGISTRY: Dict[str, Callable[..., "Rule"]] = {}


def register_rule(name: str) -> Callable[[Callable[..., "Rule"]], Callable[..., "Rule"]]:
    """
    Register a rule factory under ``name`` for use in rule strings.

    Example:
        @register_rule("even")
        class Even(Rule):
            message = "The {field} must be even"

            def check(self, value, field, data):
                return isinstance(value, int) and value % 2 == 0
    """
    def decorator(factory: Callable[..., Rule]) -> Callable[..., Rule]:
        RULE_REGISTRY[name] = factory
        return factory
    return decorator


class Rule(ABC):
    """
    A single check on one field.

    ``check`` receives the field value, the field name and every sibling
    value, so rules such as ``same:password`` can look around.
    """

    message: str = "The {field} is invalid"

    @abstractmethod
    def check(self, value: Any, field: str, data: Dict[str, Any]) -> bool:
        ...

    def describe(self, field: str) -> str:
        return self.message.format(field=field, **self._message_params())

    def _message_params(self) -> Dict[str, Any]:
        return {}


@register_rule("required")
@dataclass
class Required(Rule):
    """Present and not blank."""

    message: str = "The {field} field is required"

    def check(self, value: Any, field: str, data: Dict[str, Any]) -> bool:
        if value is None:
            return False
        if isinstance(value, str):
            return bool(value.strip())
        if isinstance(value, (list, tuple, dict, set)):
            return len(value) > 0
        return True


@register_rule("nullable")
@dataclass
class Nullable(Rule):
    """Marker: a missing value skips the remaining rules."""

    message: str = ""

    def check(self, value: Any, field: str, data: Dict[str, Any]) -> bool:
        return True


@register_rule("email")
@dataclass
class Email(Rule):
    message: str = "The {field} must be a valid email address"

    _pattern = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")

    def check(self, value: Any, field: str, data: Dict[str, Any]) -> bool:
        return isinstance(value, str) and bool(self._pattern.match(value))


@register_rule("url")
@dataclass
class Url(Rule):
    message: str = "The {field} must be a valid URL"

    _pattern = re.compile(
        r"^https?://"
        r"(?:(?:[A-Z0-9](?:[A-Z0-9-]{0,61}[A-Z0-9])?\.)+[A-Z]{2,63}\.?|localhost|\d{1,3}(?:\.\d{1,3}){3})"
        r"(?::\d+)?(?:/?|[/?]\S+)$",
        re.IGNORECASE,
    )

    def check(self, value: Any, field: str, data: Dict[str, Any]) -> bool:
        return isinstance(value, str) and bool(self._pattern.match(value))


def _measure(value: Any) -> Union[int, float, None]:
    """Numbers measure as themselves, sized values by their length."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, (str, list, tuple, dict, set)):
        return len(value)
    return None


@register_rule("min")
@dataclass
class Min(Rule):
    """Lower bound on a number, or on the length of a sized value."""

    bound: Union[int, float]
    message: str = "The {field} must be at least {bound}"

    def check(self, value: Any, field: str, data: Dict[str, Any]) -> bool:
        measured = _measure(value)
        return measured is not None and measured >= self.bound

    def _message_params(self) -> Dict[str, Any]:
        return {"bound": _pretty_number(self.bound)}


@register_rule("max")
@dataclass
class Max(Rule):
    """Upper bound on a number, or on the length of a sized value."""

    bound: Union[int, float]
    message: str = "The {field} must not exceed {bound}"

    def check(self, value: Any, field: str, data: Dict[str, Any]) -> bool:
        measured = _measure(value)
        return measured is not None and measured <= self.bound

    def _message_params(self) -> Dict[str, Any]:
        return {"bound": _pretty_number(self.bound)}


@register_rule("min_length")
@dataclass
class MinLength(Rule):
    length: int
    message: str = "The {field} must be at least {length} characters"

    def check(self, value: Any, field: str, data: Dict[str, Any]) -> bool:
        return isinstance(value, str) and len(value) >= self.length

    def _message_params(self) -> Dict[str, Any]:
        return {"length": self.length}


@register_rule("max_length")
@dataclass
class MaxLength(Rule):
    length: int
    message: str = "The {field} must not exceed {length} characters"

    def check(self, value: Any, field: str, data: Dict[str, Any]) -> bool:
        return isinstance(value, str) and len(value) <= self.length

    def _message_params(self) -> Dict[str, Any]:
        return {"length": self.length}


@register_rule("regex")
@dataclass
class Regex(Rule):
    pattern: Union[str, Pattern]
    message: str = "The {field} format is invalid"

    def __post_init__(self) -> None:
        if isinstance(self.pattern, str):
            self.pattern = re.compile(self.pattern)

    def check(self, value: Any, field: str, data: Dict[str, Any]) -> bool:
        return isinstance(value, str) and bool(self.pattern.fullmatch(value))


@register_rule("in")
@dataclass
class In(Rule):
    """
    Value must be one of ``allowed``.

    Choices from a rule string are strings; enum members and other values
    are compared through ``str`` as well.
    """

    allowed: List[Any]
    message: str = "The selected {field} is invalid"

    def check(self, value: Any, field: str, data: Dict[str, Any]) -> bool:
        return value in self.allowed or _as_text(value) in self.allowed


@register_rule("not_in")
@dataclass
class NotIn(Rule):
    disallowed: List[Any]
    message: str = "The selected {field} is invalid"

    def check(self, value: Any, field: str, data: Dict[str, Any]) -> bool:
        return value not in self.disallowed and _as_text(value) not in self.disallowed


@register_rule("integer")
@dataclass
class Integer(Rule):
    message: str = "The {field} must be an integer"

    def check(self, value: Any, field: str, data: Dict[str, Any]) -> bool:
        return isinstance(value, int) and not isinstance(value, bool)


@register_rule("numeric")
@dataclass
class Numeric(Rule):
    message: str = "The {field} must be a number"

    def check(self, value: Any, field: str, data: Dict[str, Any]) -> bool:
        return isinstance(value, (int, float)) and not isinstance(value, bool)


@register_rule("alpha")
@dataclass
class Alpha(Rule):
    message: str = "The {field} must only contain letters"

    def check(self, value: Any, field: str, data: Dict[str, Any]) -> bool:
        return isinstance(value, str) and value.isalpha()


@register_rule("alpha_numeric")
@dataclass
class AlphaNumeric(Rule):
    message: str = "The {field} must only contain letters and numbers"

    def check(self, value: Any, field: str, data: Dict[str, Any]) -> bool:
        return isinstance(value, str) and value.isalnum()


@register_rule("uuid")
@dataclass
class UUID(Rule):
    message: str = "The {field} must be a valid UUID"

    def check(self, value: Any, field: str, data: Dict[str, Any]) -> bool:
        if isinstance(value, uuid_module.UUID):
            return True
        try:
            uuid_module.UUID(str(value))
        except ValueError:
            return False
        return True


@register_rule("same")
@dataclass
class Same(Rule):
    other: str
    message: str = "The {field} must match {other}"

    def check(self, value: Any, field: str, data: Dict[str, Any]) -> bool:
        return value == data.get(self.other)

    def _message_params(self) -> Dict[str, Any]:
        return {"other": self.other.replace("_", " ")}


@register_rule("different")
@dataclass
class Different(Rule):
    other: str
    message: str = "The {field} must be different from {other}"

    def check(self, value: Any, field: str, data: Dict[str, Any]) -> bool:
        return value != data.get(self.other)

    def _message_params(self) -> Dict[str, Any]:
        return {"other": self.other.replace("_", " ")}


class CallableRule(Rule):
    """Adapts ``fn(value) -> bool`` to the rule interface."""

    def __init__(self, fn: Callable[[Any], bool], message: str = "The {field} is invalid") -> None:
        self.fn = fn
        self.message = message

    def check(self, value: Any, field: str, data: Dict[str, Any]) -> bool:
        return bool(self.fn(value))


def _pretty_number(value: Union[int, float]) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


def _as_text(value: Any) -> str:
    return str(getattr(value, "value", value))


# Parsing

RuleSpec = Union[str, Rule, Callable[[Any], bool], List[Any]]


def _number(text: str) -> Union[int, float]:
    return float(text) if "." in text else int(text)


_ARGUMENT_PARSERS: Dict[str, Callable[[List[str]], Dict[str, Any]]] = {
    "min": lambda args: {"bound": _number(args[0])},
    "max": lambda args: {"bound": _number(args[0])},
    "min_length": lambda args: {"length": int(args[0])},
    "max_length": lambda args: {"length": int(args[0])},
    "regex": lambda args: {"pattern": ",".join(args)},
    "in": lambda args: {"allowed": args},
    "not_in": lambda args: {"disallowed": args},
    "same": lambda args: {"other": args[0]},
    "different": lambda args: {"other": args[0]},
}


def parse_rule_string(text: str) -> List[Rule]:
    """
    Parse ``"required|max_length:100"`` into rule objects.

    Raises:
        ValueError: Unknown rule name or bad arguments
    """
    parsed: List[Rule] = []

    for part in text.split("|"):
        part = part.strip()
        if not part:
            continue

        name, _, raw_args = part.partition(":")
        name = name.strip().lower()
        factory = RULE_REGISTRY.get(name)
        if factory is None:
            raise ValueError(f"unknown validation rule '{name}'")

        args = raw_args.split(",") if raw_args else []
        try:
            if name in _ARGUMENT_PARSERS:
                parsed.append(factory(**_ARGUMENT_PARSERS[name](args)))
            elif args:
                parsed.append(factory(*args))
            else:
                parsed.append(factory())
        except (IndexError, TypeError, ValueError, re.error) as exc:
            raise ValueError(f"invalid arguments for rule '{name}': {raw_args!r}") from exc

    return parsed


def parse_rules(spec: RuleSpec) -> List[Rule]:
    """Normalise any accepted rule specification into a list of rules."""
    if isinstance(spec, Rule):
        return [spec]
    if isinstance(spec, str):
        return parse_rule_string(spec)
    if isinstance(spec, (list, tuple)):
        rules: List[Rule] = []
        for item in spec:
            rules.extend(parse_rules(item))
        return rules
    if callable(spec):
        return [CallableRule(spec)]
    raise TypeError(f"cannot build validation rules from {type(spec).__name__}")
