"""Custom exception hierarchy for converge.

All converge-specific exceptions inherit from ConvergeError, enabling
callers to catch every lifecycle failure with a single except clause.
Lifecycle errors carry the resource id (when known) and the last observed
state so a human can reconcile the remote account by hand.
"""

from __future__ import annotations

from collections.abc import Mapping


class ConvergeError(Exception):
    """Base exception for all converge errors."""


class LifecycleError(ConvergeError):
    """A lifecycle step failed for a specific resource."""

    def __init__(
        self,
        message: str,
        *,
        resource_id: int | None = None,
        last_state: object = None,
    ) -> None:
        self.resource_id = resource_id
        self.last_state = last_state
        super().__init__(f"{message} (resource={_fmt_id(resource_id)}, last_state={last_state})")


class CreationFailed(LifecycleError):
    """The create call errored or returned an unusable id."""


class ConvergenceTimeout(LifecycleError):
    """A resource did not reach the expected condition in time."""

    def __init__(
        self,
        description: str,
        *,
        last_value: object,
        elapsed: float,
        attempts: int,
        resource_id: int | None = None,
    ) -> None:
        self.description = description
        self.last_value = last_value
        self.elapsed = elapsed
        self.attempts = attempts
        super().__init__(
            f"Timeout waiting for {description} after {elapsed:.1f}s and {attempts} probes",
            resource_id=resource_id,
            last_state=last_value,
        )


class ProbeFailed(LifecycleError):
    """A status probe errored while waiting on a resource. The cause is chained."""


class TaggingFailed(LifecycleError):
    """Applying the managed-resource label failed."""


class DeletionFailed(LifecycleError):
    """The delete call failed at the transport level."""


class DeletionNotAcknowledged(LifecycleError):
    """The delete call succeeded but the remote system deleted nothing."""


class LifecycleCancelled(LifecycleError):
    """The caller cancelled the run; the resource was left in place."""


class LifecycleOrderError(LifecycleError):
    """A lifecycle step was invoked before its prerequisite completed."""


class ResourceNotFound(ConvergeError):
    """The remote system reports the resource does not exist."""

    def __init__(self, resource_id: int | None) -> None:
        self.resource_id = resource_id
        super().__init__(f"Resource {_fmt_id(resource_id)} not found")


class SweepPartialFailure(ConvergeError):
    """At least one matched resource could not be reclaimed."""

    def __init__(
        self,
        kind: str,
        failures: Mapping[int, BaseException],
        deleted: tuple[int, ...] = (),
    ) -> None:
        self.kind = kind
        self.failures = dict(failures)
        self.deleted = deleted
        details = ", ".join(f"{rid}: {err}" for rid, err in self.failures.items())
        super().__init__(f"Failed to reclaim {len(self.failures)} {kind}(s): {details}")


class ConfigurationError(ConvergeError):
    """Raised for invalid configuration or missing required settings."""


def _fmt_id(resource_id: int | None) -> str:
    return "unassigned" if resource_id is None else str(resource_id)
