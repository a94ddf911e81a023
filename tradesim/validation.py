"""Rule-based validation for strategy parameters and backtest requests."""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from tradesim.errors import BacktestValidationError


class ValidationLevel(Enum):
    """Validation severity levels."""

    ERROR = "error"
    WARNING = "warning"


class ValidationType(Enum):
    """Types of validation rules."""

    REQUIRED = "required"
    TYPE = "type"
    RANGE = "range"
    CUSTOM = "custom"


@dataclass
class ValidationIssue:
    """A single failed rule."""

    field: str
    message: str
    level: ValidationLevel = ValidationLevel.ERROR
    rule_type: ValidationType = ValidationType.CUSTOM
    value: Any = None

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "field": self.field,
            "message": self.message,
            "level": self.level.value,
            "rule_type": self.rule_type.value,
        }


@dataclass
class ValidationResult:
    """Result of validation."""

    is_valid: bool = True
    errors: List[ValidationIssue] = field(default_factory=list)
    warnings: List[ValidationIssue] = field(default_factory=list)

    def add_issue(self, issue: ValidationIssue) -> None:
        """Record an issue, routing it by severity."""
        if issue.level == ValidationLevel.ERROR:
            self.errors.append(issue)
            self.is_valid = False
        else:
            self.warnings.append(issue)

    def raise_if_invalid(self) -> None:
        """Raise the first error as a BacktestValidationError."""
        if self.errors:
            first = self.errors[0]
            raise BacktestValidationError(first.message, field=first.field)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "is_valid": self.is_valid,
            "errors": [e.to_dict() for e in self.errors],
            "warnings": [w.to_dict() for w in self.warnings],
        }


@dataclass
class ValidationRule:
    """A validation rule bound to one field."""

    field: str
    rule_type: ValidationType
    validator: Callable[[Any], bool]
    message: str
    level: ValidationLevel = ValidationLevel.ERROR
    condition: Optional[Callable[[Dict], bool]] = None

    def validate(self, value: Any, context: Dict = None) -> Optional[ValidationIssue]:
        """Run validation."""
        if self.condition and context is not None and not self.condition(context):
            return None

        if not self.validator(value):
            return ValidationIssue(
                field=self.field,
                message=self.message,
                level=self.level,
                rule_type=self.rule_type,
                value=value,
            )
        return None


@dataclass
class ConfigValidator:
    """Fluent validator for flat key/value configuration.

    Rules are evaluated in insertion order; ``validate`` never raises,
    callers decide whether to ``raise_if_invalid``.
    """

    _rules: List[ValidationRule] = field(default_factory=list)

    def add_rule(self, rule: ValidationRule) -> "ConfigValidator":
        """Add validation rule."""
        self._rules.append(rule)
        return self

    def required(self, field: str, message: str = None) -> "ConfigValidator":
        """Add required field rule."""
        return self.add_rule(ValidationRule(
            field=field,
            rule_type=ValidationType.REQUIRED,
            validator=lambda v: v is not None and v != "",
            message=message or f"Field '{field}' is required",
        ))

    def type_check(self, field: str, expected_type: Any, message: str = None) -> "ConfigValidator":
        """Add type check rule; bools never satisfy numeric types."""
        def check_type(value):
            if value is None:
                return True
            if isinstance(value, bool) and expected_type is not bool:
                return False
            return isinstance(value, expected_type)

        name = getattr(expected_type, "__name__", str(expected_type))
        return self.add_rule(ValidationRule(
            field=field,
            rule_type=ValidationType.TYPE,
            validator=check_type,
            message=message or f"Field '{field}' must be {name}",
        ))

    def range(
        self,
        field: str,
        min_val: Any = None,
        max_val: Any = None,
        message: str = None,
    ) -> "ConfigValidator":
        """Add inclusive range rule."""
        def check_range(value):
            if value is None:
                return True
            try:
                if min_val is not None and value < min_val:
                    return False
                if max_val is not None and value > max_val:
                    return False
            except TypeError:
                return False
            return True

        msg = message
        if not msg:
            if min_val is not None and max_val is not None:
                msg = f"Field '{field}' must be between {min_val} and {max_val}"
            elif min_val is not None:
                msg = f"Field '{field}' must be at least {min_val}"
            else:
                msg = f"Field '{field}' must be at most {max_val}"

        return self.add_rule(ValidationRule(
            field=field,
            rule_type=ValidationType.RANGE,
            validator=check_range,
            message=msg,
        ))

    def custom(
        self,
        field: str,
        validator: Callable[[Any], bool],
        message: str,
        level: ValidationLevel = ValidationLevel.ERROR,
        condition: Optional[Callable[[Dict], bool]] = None,
    ) -> "ConfigValidator":
        """Add custom validation rule."""
        return self.add_rule(ValidationRule(
            field=field,
            rule_type=ValidationType.CUSTOM,
            validator=validator,
            message=message,
            level=level,
            condition=condition,
        ))

    def validate(self, config: Dict[str, Any]) -> ValidationResult:
        """Validate configuration."""
        result = ValidationResult()

        for rule in self._rules:
            issue = rule.validate(config.get(rule.field), config)
            if issue:
                result.add_issue(issue)

        return result


def is_positive(value: Any) -> bool:
    """Check if value is positive."""
    if value is None:
        return True
    try:
        return float(value) > 0
    except (TypeError, ValueError):
        return False


def is_non_negative(value: Any) -> bool:
    """Check if value is non-negative."""
    if value is None:
        return True
    try:
        return float(value) >= 0
    except (TypeError, ValueError):
        return False


_SYMBOL_PATTERN = re.compile(r"^[A-Z0-9]+/[A-Z0-9]+$")


def is_valid_symbol(value: Any) -> bool:
    """Check for a BASE/QUOTE pair such as BTC/USDT."""
    if value is None:
        return True
    return bool(_SYMBOL_PATTERN.match(str(value)))
