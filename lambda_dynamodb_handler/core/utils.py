"""Small helpers for reading and redacting event payloads."""

import copy
from typing import Any, Iterable, Optional, Sequence

MASK = "****"
DEFAULT_MASKED_KEYS = (
    "Authorization",
    "authorization",
    "x-api-key",
    "apiKey",
    "password",
    "email",
    "phone",
)


def is_valid_field(field: Any) -> bool:
    """Return True unless the value is None or an empty string."""
    return field is not None and field != ""


def safe_get(obj: Any, path: Sequence[Any], default: Any = None) -> Any:
    """Safely get a deeply nested value.

    Args:
        obj: Dict or list to read from
        path: Keys / indexes leading to the value
        default: Value returned when any step of the path is missing

    Returns:
        The nested value, or ``default``
    """
    current = obj
    for key in path:
        try:
            current = current[key]
        except (KeyError, IndexError, TypeError):
            return default
        if current is None:
            return default
    return current


def mask_json_data(data: Any, keys: Optional[Iterable[str]] = None) -> Any:
    """Return a deep copy of ``data`` with the values of sensitive keys masked."""
    masked_keys = set(keys if keys is not None else DEFAULT_MASKED_KEYS)

    def _mask(value):
        if isinstance(value, dict):
            return {
                k: (MASK if k in masked_keys and v is not None else _mask(v))
                for k, v in value.items()
            }
        if isinstance(value, list):
            return [_mask(item) for item in value]
        return value

    return _mask(copy.deepcopy(data))
