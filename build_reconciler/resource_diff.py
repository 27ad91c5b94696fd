"""Module for deciding whether a managed object needs to be updated.

Handlers only compare the fields this library writes. Fields owned by other
actors (annotations, extra labels, defaults filled in by the control plane)
are ignored so that they do not cause update storms between reconciles.
"""

from collections.abc import Mapping
import dataclasses
import logging
from typing import Any

from .manifest import LABEL_MANAGED_BY, LABEL_PREFIX

_LOGGER = logging.getLogger(__name__)

__all__ = [
    "is_managed_label",
    "extract_managed_labels",
    "normalize",
    "equate_empty",
    "labels_differ",
]


def is_managed_label(key: str) -> bool:
    """Return True if the label key is written by this library."""
    return key.startswith(LABEL_PREFIX) or key == LABEL_MANAGED_BY


def extract_managed_labels(labels: Mapping[str, str] | None) -> dict[str, str]:
    """Return only the labels that are owned by this library."""
    return {k: v for k, v in (labels or {}).items() if is_managed_label(k)}


def _is_empty(value: Any) -> bool:
    return value is None or (
        isinstance(value, (str, list, tuple, dict)) and len(value) == 0
    )


def normalize(value: Any) -> Any:
    """Return a comparable form of the value where empty values are dropped.

    Dataclasses are converted to dictionaries. Dictionary entries whose value is
    None or an empty collection are removed, recursively, so that an unset
    field compares equal to one that was defaulted to an empty value.
    """
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        value = {
            f.name: getattr(value, f.name) for f in dataclasses.fields(value)
        }
    if isinstance(value, Mapping):
        result = {}
        for k, v in value.items():
            v = normalize(v)
            if not _is_empty(v):
                result[k] = v
        return result
    if isinstance(value, (list, tuple)):
        return [normalize(v) for v in value]
    return value


def equate_empty(a: Any, b: Any) -> bool:
    """Compare two values treating empty and absent values as equal."""
    a_norm = normalize(a)
    b_norm = normalize(b)
    if _is_empty(a_norm) and _is_empty(b_norm):
        return True
    return bool(a_norm == b_norm)


def labels_differ(
    current: Mapping[str, str] | None, desired: Mapping[str, str] | None
) -> bool:
    """Return True if the managed labels of the two objects differ."""
    current_labels = extract_managed_labels(current)
    desired_labels = extract_managed_labels(desired)
    if current_labels != desired_labels:
        _LOGGER.debug(
            "Managed labels differ: %s != %s", current_labels, desired_labels
        )
        return True
    return False
