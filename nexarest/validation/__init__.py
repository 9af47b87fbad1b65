"""
nexarest Validation
===================

Pluggable validation of decoded request payloads.
"""

from nexarest.validation.rules import (
    RULE_REGISTRY,
    Alpha,
    AlphaNumeric,
    CallableRule,
    Different,
    Email,
    In,
    Integer,
    Max,
    MaxLength,
    Min,
    MinLength,
    NotIn,
    Nullable,
    Numeric,
    Regex,
    Required,
    Rule,
    Same,
    UUID,
    Url,
    parse_rules,
    register_rule,
)
from nexarest.validation.validator import (
    NoopValidator,
    RuleSet,
    StructValidator,
    ValidationError,
    ValidationResult,
    Validator,
    rules,
    validated,
)

__all__ = [
    # Engine
    "Validator",
    "StructValidator",
    "NoopValidator",
    "RuleSet",
    "ValidationError",
    "ValidationResult",
    "rules",
    "validated",
    # Rules
    "RULE_REGISTRY",
    "Rule",
    "CallableRule",
    "Required",
    "Nullable",
    "Email",
    "Url",
    "Min",
    "Max",
    "MinLength",
    "MaxLength",
    "Regex",
    "In",
    "NotIn",
    "Integer",
    "Numeric",
    "Alpha",
    "AlphaNumeric",
    "UUID",
    "Same",
    "Different",
    "parse_rules",
    "register_rule",
]
