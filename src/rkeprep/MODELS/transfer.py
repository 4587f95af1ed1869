"""
Models for image transfer batches.
"""
from enum import Enum
from pydantic import BaseModel


class TransferDirection(str, Enum):
    """
    Direction of an image transfer batch.
    """
    PULL = "pull"
    PUSH = "push"


class TransferResult(BaseModel):
    """
    Aggregate outcome of one transfer batch.

    ``attempted_count`` always equals ``success_count + failure_count``.
    """
    attempted_count: int = 0
    success_count: int = 0
    failure_count: int = 0

    def record_success(self) -> None:
        self.attempted_count += 1
        self.success_count += 1

    def record_failure(self) -> None:
        self.attempted_count += 1
        self.failure_count += 1

    @property
    def ok(self) -> bool:
        """True when no image in the batch failed."""
        return self.failure_count == 0

    @property
    def exit_code(self) -> int:
        return 0 if self.ok else 1
