"""Error taxonomy shared by the discovery, proxy and data access layers."""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from canister_mapper.models import GetterFailure


class CanisterMapperError(Exception):
    """Base class of all errors raised by this package."""

    pass


class DescriptionParseError(CanisterMapperError):
    """Raised when every parsing tier failed for all supplied interface descriptions."""

    pass


class NoMethodsDiscoveredError(CanisterMapperError):
    """Raised when an interface description parsed, but did not declare any procedure."""

    pass


class FactoryEvaluationError(CanisterMapperError):
    """Raised by the factory interpreter for source it cannot evaluate."""

    pass


class ProxyCreationError(CanisterMapperError):
    """Raised when the endpoint is unreachable or its identifier is malformed."""

    def __init__(self, canister_id: str, message: str):
        super().__init__(message)
        self.canister_id = canister_id


class InvocationErrorKind:
    """Kinds of method invocation failures."""

    NOT_FOUND = "not_found"
    UNAUTHORIZED = "unauthorized"
    TRAPPED = "trapped"
    ARITY_MISMATCH = "arity_mismatch"
    INVALID_ARGUMENT = "invalid_argument"
    OTHER = "other"


# Fragments of transport error messages, checked in order.
_ERROR_MESSAGE_MARKERS = (
    ("does not exist", InvocationErrorKind.NOT_FOUND),
    ("has no query method", InvocationErrorKind.NOT_FOUND),
    ("has no update method", InvocationErrorKind.NOT_FOUND),
    ("caller not authorized", InvocationErrorKind.UNAUTHORIZED),
    ("unauthorized", InvocationErrorKind.UNAUTHORIZED),
    ("canister trapped", InvocationErrorKind.TRAPPED),
    ("wrong number of message arguments", InvocationErrorKind.ARITY_MISMATCH),
)

_USER_FACING_REASONS = {
    InvocationErrorKind.NOT_FOUND: "Method not found on canister",
    InvocationErrorKind.UNAUTHORIZED: "Not authorized to call this method",
    InvocationErrorKind.TRAPPED: "Canister execution failed",
    InvocationErrorKind.ARITY_MISMATCH: "Method requires parameters - call it with explicit arguments",
}


class MethodInvocationError(CanisterMapperError):
    """Raised when calling a remote procedure failed.

    Attributes:
        method: Name of the procedure that was called.
        kind: One of the `InvocationErrorKind` values.
    """

    def __init__(self, method: str, kind: str, message: str):
        super().__init__(message)
        self.method = method
        self.kind = kind

    @property
    def reason(self) -> str:
        """A short, human-readable reason for this failure."""
        return _USER_FACING_REASONS.get(self.kind, str(self))

    @classmethod
    def from_exception(cls, method: str, error: BaseException) -> MethodInvocationError:
        """Classify an arbitrary exception raised while invoking `method`.

        Args:
            method: The procedure that was being invoked.
            error: The exception raised by the proxy or the transport.

        Returns:
            The error itself, if it already is a `MethodInvocationError`, otherwise a new
            error whose kind was derived from the exception message.
        """
        if isinstance(error, MethodInvocationError):
            return error

        message = str(error)
        lowered = message.lower()
        for marker, kind in _ERROR_MESSAGE_MARKERS:
            if marker in lowered:
                return cls(method, kind, message)

        return cls(method, InvocationErrorKind.OTHER, message or type(error).__name__)


class DataLoadError(CanisterMapperError):
    """Raised when every getter failed and none could be skipped."""

    def __init__(self, failures: Sequence[GetterFailure]):
        self.failures = list(failures)
        summary = "; ".join(f"{failure.name}: {failure.reason}" for failure in self.failures)
        super().__init__(
            f"All canister method calls failed and no methods were available without parameters. {summary}"
        )


class PersistenceError(CanisterMapperError):
    """Raised when a setter call of a save batch failed."""

    def __init__(self, section: str, method: str | None, reason: str):
        if method:
            message = f'Saving section "{section}" with {method} failed: {reason}'
        else:
            message = f'Saving section "{section}" failed: {reason}'
        super().__init__(message)
        self.section = section
        self.method = method
        self.reason = reason
