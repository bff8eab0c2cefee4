"""
Named validation predicates.

Entity configs reference custom validation by name; the registry resolves the
name to a predicate `(value, record) -> bool` at validation time. `value` is the
rule's field value (None when absent) and `record` is the merged field view of
the document being validated.
"""

from datetime import date, datetime
from typing import Any, Callable, Dict, List, Mapping

from brainprep.core.exceptions import InvalidConfigError
from brainprep.core.logging_config import get_logger

logger = get_logger("config.validators")

ValidatorFn = Callable[[Any, Mapping[str, Any]], bool]


def _as_number(value: Any):
    if isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def positive_integer(value: Any, record: Mapping[str, Any]) -> bool:
    number = _as_number(value)
    return number is not None and number.is_integer() and number > 0


def non_empty_list_if_present(value: Any, record: Mapping[str, Any]) -> bool:
    if value is None:
        return True
    return isinstance(value, list) and len(value) > 0


def age_in_range(value: Any, record: Mapping[str, Any]) -> bool:
    """Optional age between 0 and 150."""
    if value is None:
        return True
    number = _as_number(value)
    return number is not None and 0 <= number <= 150


def iso_date_if_present(value: Any, record: Mapping[str, Any]) -> bool:
    if not value:
        return True
    if isinstance(value, (date, datetime)):
        return True
    try:
        datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        return True
    except ValueError:
        return False


def confidence_in_range(value: Any, record: Mapping[str, Any]) -> bool:
    if value is None:
        return True
    number = _as_number(value)
    return number is not None and 0.0 <= number <= 1.0


BUILTIN_VALIDATORS: Dict[str, ValidatorFn] = {
    'positive_integer': positive_integer,
    'non_empty_list_if_present': non_empty_list_if_present,
    'age_in_range': age_in_range,
    'iso_date_if_present': iso_date_if_present,
    'confidence_in_range': confidence_in_range,
}


class ValidatorRegistry:
    """Name to predicate lookup for `custom` validation rules."""

    def __init__(self, include_builtins: bool = True):
        self._validators: Dict[str, ValidatorFn] = {}
        if include_builtins:
            self._validators.update(BUILTIN_VALIDATORS)

    def register(self, name: str, fn: ValidatorFn, replace: bool = False) -> None:
        if not callable(fn):
            raise InvalidConfigError(f"Validator '{name}' is not callable")
        if name in self._validators and not replace:
            raise InvalidConfigError(f"Validator '{name}' is already registered")
        self._validators[name] = fn
        logger.debug(f"Registered validator: {name}")

    def get(self, name: str) -> ValidatorFn:
        try:
            return self._validators[name]
        except KeyError:
            raise InvalidConfigError(f"Unknown validator: {name}")

    def __contains__(self, name: str) -> bool:
        return name in self._validators

    def names(self) -> List[str]:
        return sorted(self._validators)
