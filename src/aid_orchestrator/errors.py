"""
Error classes for the AID orchestrator.

Every lifecycle verb either returns a result or raises one of these.
The core never terminates the process; the CLI and HTTP layers decide
how each kind is rendered:

- NotFoundError: an Image/Container/Solver/package identifier does not resolve
- InvalidStateTransition: a lifecycle guard was violated
- RuntimeFailure: the container engine (or a running solver) failed
- MalformedDescriptor: a package descriptor or solver class path is invalid
- ArtifactIOFailure: a template could not be read or an artifact not written
- StoreError: the entity store failed for a reason other than a missing record

None of these are retried by the orchestrator.
"""

from __future__ import annotations


class OrchestratorError(Exception):
    """Base exception for aid-orchestrator."""
    pass


class NotFoundError(OrchestratorError):
    """A referenced entity could not be fetched."""

    def __init__(self, kind: str, identifier: str) -> None:
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"Cannot fetch {kind} {identifier}")


class EntityNotFound(NotFoundError):
    """Raised by the entity store when a uid has no record."""
    pass


class InvalidStateTransition(OrchestratorError):
    """
    A lifecycle guard was violated.

    Examples:
    - starting a container that is already running
    - stopping a container that is not running
    - removing a running container
    - building an image that already exists
    """

    def __init__(self, identifier: str, reason: str) -> None:
        self.identifier = identifier
        self.reason = reason
        super().__init__(f"The requested {reason}: {identifier}")


class RuntimeFailure(OrchestratorError):
    """The container engine call itself failed; carries the engine message."""
    pass


class MalformedDescriptor(OrchestratorError):
    """A package descriptor is unparsable or a solver class path is not package/file/class."""
    pass


class ArtifactIOFailure(OrchestratorError):
    """Template read or generated-file write failure."""
    pass


class StoreError(OrchestratorError):
    """Generic persistence failure."""
    pass


__all__ = [
    "ArtifactIOFailure",
    "EntityNotFound",
    "InvalidStateTransition",
    "MalformedDescriptor",
    "NotFoundError",
    "OrchestratorError",
    "RuntimeFailure",
    "StoreError",
]
