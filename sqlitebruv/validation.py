import re
from typing import Any, Iterable, Sequence

from sqlitebruv.errors import ValidationError

MAX_PARAMS = 100
MAX_STRING_PARAM_LENGTH = 1000

# A condition is a single predicate: no second statement, no destructive clause
DANGEROUS_PATTERNS = [
    re.compile(r";\s*$"),
    re.compile(r"\bUNION\b", re.IGNORECASE),
    re.compile(r"\bDROP\b", re.IGNORECASE),
    re.compile(r"\bDELETE\b", re.IGNORECASE),
    re.compile(r"\bUPDATE\b", re.IGNORECASE),
    re.compile(r"\bINSERT\b", re.IGNORECASE),
    re.compile(r"\bALTER\b", re.IGNORECASE),
    re.compile(r"\bEXEC\b", re.IGNORECASE),
]

ALLOWED_OPERATORS = [
    "=",
    ">",
    "<",
    ">=",
    "<=",
    "LIKE",
    "IN",
    "BETWEEN",
    "IS NULL",
    "IS NOT NULL",
]

PARAM_TYPES = (str, int, float, bool, type(None))


class ConditionValidator:
    def __init__(
        self,
        max_params: int = MAX_PARAMS,
        max_string_length: int = MAX_STRING_PARAM_LENGTH,
    ):
        self.max_params = max_params
        self.max_string_length = max_string_length

    def validate(self, condition: Any, params: Sequence[Any]):
        self.validate_condition(condition)
        self.validate_params(params)

    def validate_condition(self, condition: Any):
        if not isinstance(condition, str) or not condition.strip():
            raise ValidationError("Condition must be a non-empty string")

        for pattern in DANGEROUS_PATTERNS:
            if pattern.search(condition):
                raise ValidationError(
                    f"Condition contains a disallowed pattern ({pattern.pattern}): {condition}"
                )

        upper = condition.upper()
        if not any(op in upper for op in ALLOWED_OPERATORS):
            raise ValidationError(
                f"Condition has no recognised operator: {condition}. "
                f"Allowed operators: {', '.join(ALLOWED_OPERATORS)}"
            )

    def validate_params(self, params: Sequence[Any]):
        if len(params) > self.max_params:
            raise ValidationError(
                f"Too many parameters: {len(params)} (max {self.max_params})"
            )
        self.check_param_types(params)
        for param in params:
            if isinstance(param, str) and len(param) > self.max_string_length:
                raise ValidationError(
                    f"String parameter exceeds {self.max_string_length} characters"
                )

    def check_param_types(self, values: Iterable[Any]):
        for value in values:
            if not isinstance(value, PARAM_TYPES):
                raise ValidationError(
                    f"Invalid parameter type: {type(value).__name__}. "
                    "Only str, int, float, bool and None are allowed"
                )


IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def validate_identifier(name: Any, kind: str = "column"):
    if not isinstance(name, str) or not IDENTIFIER_RE.match(name):
        raise ValidationError(f"Invalid {kind} name: {name!r}")
