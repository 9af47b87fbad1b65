"""
nexarest Validator
==================

Structural validation of decoded request payloads.

``Request.body`` runs the router's validator on every value it binds. The
default ``StructValidator`` reads rules declared on dataclass fields:

    @dataclass
    class CreateArticle:
        title: str = validated("required|max_length:100")
        tags: list[str] = field(default_factory=list, metadata=rules("max:5"))

Anything that is not a dataclass passes untouched. Swap in your own
validator (anything with ``validate(value)``) or ``NoopValidator`` on the
router to change that.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Protocol, runtime_checkable

from nexarest.core.exceptions import RequestError
from nexarest.validation.rules import Nullable, Required, Rule, RuleSpec, parse_rules

RULES_METADATA_KEY = "nexarest.rules"


class ValidationError(RequestError):
    """
    Validation failed.

    Attributes:
        errors: Messages per field path (``"author.email"``, ``"tags.0"``)
    """

    def __init__(self, errors: Optional[Dict[str, List[str]]] = None) -> None:
        self.errors: Dict[str, List[str]] = errors or {}
        super().__init__(str(self))

    def __str__(self) -> str:
        messages = [message for items in self.errors.values() for message in items]
        if not messages:
            return "validation failed"
        return "; ".join(messages)

    def first(self, field_name: Optional[str] = None) -> Optional[str]:
        """First message for ``field_name``, or the first message overall."""
        if field_name is not None:
            messages = self.errors.get(field_name, [])
            return messages[0] if messages else None
        for messages in self.errors.values():
            if messages:
                return messages[0]
        return None


@dataclass
class ValidationResult:
    """Outcome of ``RuleSet.validate``."""

    valid: bool
    errors: Dict[str, List[str]] = field(default_factory=dict)

    def __bool__(self) -> bool:
        return self.valid

    def raise_if_invalid(self) -> None:
        if not self.valid:
            raise ValidationError(self.errors)


class RuleSet:
    """
    Rules for a flat mapping of field values.

    Example:
        result = RuleSet({"title": "required|max_length:5"}).validate({"title": ""})
        result.errors   # {"title": ["The title field is required"]}
    """

    def __init__(self, rules: Mapping[str, RuleSpec]) -> None:
        self.rules: Dict[str, List[Rule]] = {name: parse_rules(spec) for name, spec in rules.items()}

    def validate(self, data: Mapping[str, Any]) -> ValidationResult:
        errors: Dict[str, List[str]] = {}

        for name, rules in self.rules.items():
            messages = self._check_field(name, data.get(name), rules, data)
            if messages:
                errors[name] = messages

        return ValidationResult(valid=not errors, errors=errors)

    def _check_field(
        self,
        name: str,
        value: Any,
        rules: List[Rule],
        data: Mapping[str, Any],
    ) -> List[str]:
        label = name.replace("_", " ")

        if _is_blank(value):
            # Optional fields skip everything when missing
            required = next((r for r in rules if isinstance(r, Required)), None)
            return [required.describe(label)] if required is not None else []

        return [
            rule.describe(label)
            for rule in rules
            if not isinstance(rule, (Required, Nullable)) and not rule.check(value, name, dict(data))
        ]

    def __len__(self) -> int:
        return len(self.rules)


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


@runtime_checkable
class Validator(Protocol):
    """Anything that can vet a decoded payload."""

    def validate(self, value: Any) -> None:
        """Raise ``ValidationError`` when ``value`` is not acceptable."""
        ...


class NoopValidator:
    """Accepts everything."""

    def validate(self, value: Any) -> None:
        return None


class StructValidator:
    """
    Validates dataclass instances against rules declared on their fields.

    Nested dataclasses, and lists, tuples and dict values holding
    dataclasses, are validated too; their errors are keyed by dotted path.
    Rule sets are built once per class.
    """

    def __init__(self) -> None:
        self._cache: Dict[type, RuleSet] = {}

    def validate(self, value: Any) -> None:
        errors: Dict[str, List[str]] = {}
        self._walk(value, "", errors)
        if errors:
            raise ValidationError(errors)

    def rule_set(self, cls: type) -> RuleSet:
        rule_set = self._cache.get(cls)
        if rule_set is None:
            specs = {
                f.name: f.metadata[RULES_METADATA_KEY]
                for f in dataclasses.fields(cls)
                if RULES_METADATA_KEY in f.metadata
            }
            rule_set = self._cache[cls] = RuleSet(specs)
        return rule_set

    def _walk(self, value: Any, prefix: str, errors: Dict[str, List[str]]) -> None:
        if dataclasses.is_dataclass(value) and not isinstance(value, type):
            values = {f.name: getattr(value, f.name) for f in dataclasses.fields(value)}
            result = self.rule_set(type(value)).validate(values)
            for name, messages in result.errors.items():
                errors.setdefault(prefix + name, []).extend(messages)
            for name, item in values.items():
                self._walk(item, f"{prefix}{name}.", errors)
        elif isinstance(value, (list, tuple)):
            for index, item in enumerate(value):
                self._walk(item, f"{prefix}{index}.", errors)
        elif isinstance(value, Mapping):
            for key, item in value.items():
                self._walk(item, f"{prefix}{key}.", errors)


def rules(*specs: RuleSpec) -> Dict[str, Any]:
    """
    Field metadata carrying validation rules.

    Example:
        name: str = field(default="", metadata=rules("required|max_length:50"))
    """
    spec: RuleSpec = specs[0] if len(specs) == 1 else list(specs)
    parse_rules(spec)
    return {RULES_METADATA_KEY: spec}


def validated(*specs: RuleSpec, **field_kwargs: Any) -> Any:
    """
    ``dataclasses.field`` with validation rules attached.

    Example:
        title: str = validated("required|max_length:100")
        views: int = validated("min:0", default=0)
    """
    metadata = dict(field_kwargs.pop("metadata", None) or {})
    metadata.update(rules(*specs))
    return field(metadata=metadata, **field_kwargs)
