"""
Pure input-validation helpers shared by the filter engine and the journey
resolver. No Flask or data-loader imports.
"""

from typing import Any, List, Mapping


class InvalidInputError(ValueError):
    """Raised when an input is structurally wrong (not a list, not a record,
    missing a required field). Out-of-range values are never reported here."""


def require_list(value: Any, name: str) -> List[Any]:
    """
    Return value as a list, or raise InvalidInputError.

    Tuples are accepted since callers often hand over immutable snapshots.
    Strings and mappings are rejected even though they are iterable.
    """
    if isinstance(value, (list, tuple)):
        return list(value)
    raise InvalidInputError(f"{name} must be a list, got {type(value).__name__}.")


def require_mapping(value: Any, name: str) -> Mapping:
    if isinstance(value, Mapping):
        return value
    raise InvalidInputError(f"{name} must be an object, got {type(value).__name__}.")


def require_field(record: Mapping, key: str, name: str) -> Any:
    """Return record[key]; missing, None and blank strings are all rejected."""
    value = record.get(key)
    if value is None or (isinstance(value, str) and not value.strip()):
        raise InvalidInputError(f"{name} is missing required field '{key}'.")
    return value


def require_number_pair(value: Any, name: str) -> List[float]:
    """
    Validate an inclusive [min, max] range.

    Inverted pairs are allowed (they simply match nothing); only the shape
    and numeric content are checked.
    """
    if not isinstance(value, (list, tuple)) or len(value) != 2:
        raise InvalidInputError(f"{name} must be a [min, max] pair.")
    out: List[float] = []
    for part in value:
        if isinstance(part, bool):
            raise InvalidInputError(f"{name} must contain numbers.")
        try:
            out.append(float(part))
        except (TypeError, ValueError):
            raise InvalidInputError(f"{name} must contain numbers.") from None
    return out
