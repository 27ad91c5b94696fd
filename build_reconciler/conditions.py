"""Conditions recording the progress of a logical entity.

A condition is a single typed fact about an entity, e.g. that the source code
was cloned. Conditions are stored as a list on the entity status with at most
one entry per type. They are never removed, only overwritten, and each carries
the generation of the entity it was observed for so that readers can tell
whether it reflects the latest spec.

This module performs no I/O. The pipeline specific meaning of each condition
is layered on top by the build controller.
"""

from dataclasses import dataclass, field
from datetime import datetime, UTC
from enum import StrEnum
import logging

from mashumaro import DataClassDictMixin

__all__ = [
    "ConditionType",
    "ConditionStatus",
    "Condition",
    "new_condition",
    "set_status_condition",
    "set_condition",
    "find_status_condition",
    "is_status_condition_true",
    "is_status_condition_false",
]

_LOGGER = logging.getLogger(__name__)


class ConditionType(StrEnum):
    """Checkpoints of the build pipeline."""

    INITIALIZED = "Initialized"
    CLONE_SUCCEEDED = "CloneSucceeded"
    BUILD_SUCCEEDED = "BuildSucceeded"
    PUSH_SUCCEEDED = "PushSucceeded"
    COMPLETED = "Completed"
    DEPLOYABLE_ARTIFACT_CREATED = "DeployableArtifactCreated"
    DEPLOYMENT_APPLIED = "DeploymentApplied"


class ConditionStatus(StrEnum):
    """Value of a condition."""

    TRUE = "True"
    FALSE = "False"
    UNKNOWN = "Unknown"


def _now() -> datetime:
    return datetime.now(UTC)


@dataclass
class Condition(DataClassDictMixin):
    """A single timestamped fact about an entity."""

    type: ConditionType
    status: ConditionStatus
    reason: str
    message: str = ""
    observed_generation: int = 0
    last_transition_time: datetime = field(default_factory=_now)

    @staticmethod
    def parse_time(value: str | datetime | None) -> datetime:
        """Parse a serialized transition time, defaulting to now."""
        if value is None:
            return _now()
        if isinstance(value, datetime):
            return value
        return datetime.fromisoformat(value.replace("Z", "+00:00"))

    def __str__(self) -> str:
        return f"{self.type}={self.status} ({self.reason})"


def new_condition(
    condition_type: ConditionType,
    status: ConditionStatus,
    reason: str,
    message: str,
    generation: int,
) -> Condition:
    """Create a condition observed at the given entity generation."""
    return Condition(
        type=condition_type,
        status=status,
        reason=reason,
        message=message,
        observed_generation=generation,
    )


def find_status_condition(
    conditions: list[Condition], condition_type: ConditionType
) -> Condition | None:
    """Return the condition with the given type, if present."""
    for condition in conditions:
        if condition.type == condition_type:
            return condition
    return None


def set_status_condition(conditions: list[Condition], new: Condition) -> bool:
    """Insert or update the condition with the type of `new`.

    The transition time is only refreshed when the status value changes, so a
    change of reason or message alone is not a new transition. The list is
    modified in place.

    Returns:
        True if the list of conditions was changed.
    """
    existing = find_status_condition(conditions, new.type)
    if existing is None:
        _LOGGER.debug("Adding condition %s", new)
        conditions.append(new)
        return True

    changed = False
    if existing.status != new.status:
        _LOGGER.debug("Condition %s transitioned to %s", existing, new.status)
        existing.status = new.status
        existing.last_transition_time = new.last_transition_time
        changed = True
    if existing.reason != new.reason:
        existing.reason = new.reason
        changed = True
    if existing.message != new.message:
        existing.message = new.message
        changed = True
    if existing.observed_generation != new.observed_generation:
        existing.observed_generation = new.observed_generation
        changed = True
    return changed


def set_condition(
    conditions: list[Condition],
    condition_type: ConditionType,
    status: ConditionStatus,
    reason: str,
    message: str,
    generation: int,
) -> bool:
    """Upsert a condition by type. See `set_status_condition`."""
    return set_status_condition(
        conditions, new_condition(condition_type, status, reason, message, generation)
    )


def is_status_condition_true(
    conditions: list[Condition], condition_type: ConditionType
) -> bool:
    """Return True if the condition is present and True."""
    condition = find_status_condition(conditions, condition_type)
    return condition is not None and condition.status == ConditionStatus.TRUE


def is_status_condition_false(
    conditions: list[Condition], condition_type: ConditionType
) -> bool:
    """Return True if the condition is present and False."""
    condition = find_status_condition(conditions, condition_type)
    return condition is not None and condition.status == ConditionStatus.FALSE
