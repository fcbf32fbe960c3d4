"""converge - lifecycle convergence for eventually consistent cloud APIs.

Example:

    import asyncio
    from converge import GuestSpec, run_lifecycle, sweep

    spec = GuestSpec(hostname="test", domain="converge.dev", datacenter="ams01")

    async def main():
        resource = await run_lifecycle(spec, timeout=300, interval=10)
        print(resource.id, resource.state)

    asyncio.run(main())
"""

# Errors
from converge.core.exceptions import (
    ConfigurationError,
    ConvergeError,
    ConvergenceTimeout,
    CreationFailed,
    DeletionFailed,
    DeletionNotAcknowledged,
    LifecycleCancelled,
    LifecycleError,
    LifecycleOrderError,
    ProbeFailed,
    ResourceNotFound,
    SweepPartialFailure,
    TaggingFailed,
)

# Configuration
from converge.config import Settings, load_settings

# Harness entry points
from converge.harness import run_lifecycle, run_ssh_key_lifecycle, sweep

# Core engine
from converge.lifecycle import LifecycleOrchestrator
from converge.ssh_keys import SSHKeyLifecycle
from converge.sweeper import IsolationSweeper, SweepReport
from converge.wait import await_condition

# Logging
from converge.observability.logging import LogConfig, setup_logging, teardown_logging

# Types
from converge.types import (
    GuestSpec,
    Marker,
    Operation,
    Resource,
    ResourceState,
    ResourceSummary,
    SSHKeyRecord,
    SSHKeySpec,
)

__all__ = [
    # Errors
    "ConfigurationError",
    "ConvergeError",
    "ConvergenceTimeout",
    "CreationFailed",
    "DeletionFailed",
    "DeletionNotAcknowledged",
    "LifecycleCancelled",
    "LifecycleError",
    "LifecycleOrderError",
    "ProbeFailed",
    "ResourceNotFound",
    "SweepPartialFailure",
    "TaggingFailed",
    # Configuration
    "Settings",
    "load_settings",
    # Harness
    "run_lifecycle",
    "run_ssh_key_lifecycle",
    "sweep",
    # Core
    "IsolationSweeper",
    "LifecycleOrchestrator",
    "SSHKeyLifecycle",
    "SweepReport",
    "await_condition",
    # Logging
    "LogConfig",
    "setup_logging",
    "teardown_logging",
    # Types
    "GuestSpec",
    "Marker",
    "Operation",
    "Resource",
    "ResourceState",
    "ResourceSummary",
    "SSHKeyRecord",
    "SSHKeySpec",
]
