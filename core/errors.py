"""Error types raised by the meta-RL adaptation engine.

Every failure surfaced by a public entry point is a ``MetaRLError``. Tagged
subclasses propagate unchanged; anything else raised underneath is wrapped in
an ``AdaptationError`` naming the operation that failed.
"""
import functools
import logging
from typing import Callable, TypeVar

logger = logging.getLogger(__name__)

F = TypeVar('F', bound=Callable)


class MetaRLError(Exception):
    """Base class for all engine errors."""


class InitializationError(MetaRLError):
    """Meta-parameters could not be initialized (e.g. dimensions <= 0)."""


class UninitializedParametersError(MetaRLError):
    """An adaptation was attempted before the meta-parameters exist."""


class EmptyTaskDistributionError(MetaRLError):
    """A task distribution without tasks was supplied to the sampler."""


class NotInitializedError(MetaRLError):
    """The task sampler was used before a distribution was set up."""


class UnsupportedAlgorithmError(MetaRLError):
    """The configured algorithm has no implementation (ProtoNet)."""


class ArgumentError(MetaRLError, ValueError):
    """Malformed arguments: mismatched lengths, bad config values, bad batches."""


class CheckpointError(MetaRLError):
    """A checkpoint could not be written or read."""


class AdaptationError(MetaRLError):
    """Wraps a lower-level failure with the name of the originating operation.

    Args:
        operation: Public operation that failed (e.g. ``'MAML adaptation'``)
        cause: The original exception
    """

    def __init__(self, operation: str, cause: BaseException):
        super().__init__(f"{operation} failed: {cause}")
        self.operation = operation
        self.cause = cause


def wrap_errors(operation: str) -> Callable[[F], F]:
    """Decorator applying the engine's propagation policy to an entry point."""

    def decorator(fn: F) -> F:
        @functools.wraps(fn)
        def wrapper(*args, **kwargs):
            try:
                return fn(*args, **kwargs)
            except MetaRLError:
                raise
            except Exception as e:
                logger.error(f"{operation} failed: {e}")
                raise AdaptationError(operation, e) from e
        return wrapper  # type: ignore[return-value]

    return decorator
