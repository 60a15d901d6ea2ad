"""
Errors reported by a reconciliation pass.

A pass never raises these; they travel inside a failed ReconcileResult and
collect context (node agent, resource kind and identity) as they are wrapped
on the way up.
"""

from typing import Any, Dict, Optional


class ReconcileError(Exception):
    """A failure that aborted a reconciliation pass."""

    def __init__(
        self,
        message: str,
        cause: Optional[BaseException] = None,
        **details: Any,
    ):
        self.message = message
        self.cause = cause
        self.details: Dict[str, Any] = {}
        if isinstance(cause, ReconcileError):
            self.details.update(cause.details)
        self.details.update(details)
        super().__init__(message)
        self.__cause__ = cause

    def __str__(self) -> str:
        if self.cause is not None:
            return f"{self.message}: {self.cause}"
        return self.message

    def wrap(self, message: str, **details: Any) -> "ReconcileError":
        """Return a new error of the same type with added context."""
        return type(self)(message, cause=self, **details)

    @property
    def root_cause(self) -> BaseException:
        err: BaseException = self
        while isinstance(err, ReconcileError) and err.cause is not None:
            err = err.cause
        return err


class ConstructionError(ReconcileError):
    """A resource factory could not build its desired object."""


class ApplyError(ReconcileError):
    """The applier failed to converge a desired object."""
