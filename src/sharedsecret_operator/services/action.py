"""
Reconcile outcome returned by every reconciler path.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class Action:
    """What the controller should do with an object after a reconcile.

    ``requeue_after`` is the delay in seconds before the object is looked at
    again even if nothing changes; ``None`` means wait for the next change.
    """

    requeue_after: float | None = None

    @classmethod
    def requeue(cls, seconds: float) -> "Action":
        return cls(requeue_after=seconds)

    @classmethod
    def await_change(cls) -> "Action":
        return cls(requeue_after=None)

    def __str__(self) -> str:
        if self.requeue_after is None:
            return "await change"
        return f"requeue after {self.requeue_after:g}s"
