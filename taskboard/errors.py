from __future__ import annotations

from typing import Optional


class TaskboardError(Exception):
    """Base class for every error raised by the task board package."""

    code = "taskboard_error"

    def __init__(self, message: str, code: Optional[str] = None) -> None:
        super().__init__(message)
        if code is not None:
            self.code = code


# === Reordering engine ===


class ReorderError(TaskboardError):
    code = "reorder_error"


class PositionOutOfRange(ReorderError):
    code = "position_out_of_range"

    def __init__(self, position: int, size: int, upper: Optional[int] = None) -> None:
        upper = size - 1 if upper is None else upper
        super().__init__(f"position {position} outside [0, {upper}] for {size} siblings")
        self.position = position
        self.size = size


class ContainerMismatch(ReorderError):
    code = "container_mismatch"


# === Policies ===


class PolicyViolation(TaskboardError):
    code = "policy_violation"


class MoveNotAllowed(PolicyViolation):
    code = "move_not_allowed"


class LimitExceeded(PolicyViolation):
    code = "limit_exceeded"


# === Stores ===


class NotFound(TaskboardError):
    code = "not_found"


class ConcurrentModification(TaskboardError):
    code = "concurrent_modification"
