"""Exception taxonomy for kgprox.

Three families matter to callers:

- ``QueryValidationError``: bad request input, rejected before any filtering.
- ``DataIntegrityError``: the persisted alias table (or fact data) violates the
  single-hop canonical invariant. Raised during a rebuild; the active snapshot
  stays in place.
- ``RebuildError``: a rebuild attempt failed or was cancelled.

Absence conditions (principal missing, no facts for an entity, unknown cluster
id) are not errors and never raise.
"""

from typing import Optional, Sequence


class KgproxError(Exception):
    """Base class for all kgprox errors."""


class QueryValidationError(KgproxError, ValueError):
    """A query parameter was rejected.

    Attributes:
        field: Name of the offending parameter (as the caller spelled it).
        reason: Human-readable explanation.
    """

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"invalid {field}: {reason}")


class DataIntegrityError(KgproxError):
    """Persisted data violates a structural invariant."""


class AliasIntegrityError(DataIntegrityError):
    """The alias table contains chains or conflicting canonical assignments.

    Attributes:
        chains: ``(original, canonical, canonical_of_canonical)`` triples.
        conflicts: ``(original, [canonical names])`` pairs.
    """

    def __init__(
        self,
        chains: Sequence[tuple[str, str, str]] = (),
        conflicts: Sequence[tuple[str, list[str]]] = (),
    ):
        self.chains = list(chains)
        self.conflicts = list(conflicts)
        parts = []
        if self.chains:
            sample = ", ".join(f"{a} -> {b} -> {c}" for a, b, c in self.chains[:5])
            parts.append(f"{len(self.chains)} alias chain(s): {sample}")
        if self.conflicts:
            sample = ", ".join(f"{name} -> {targets}" for name, targets in self.conflicts[:5])
            parts.append(f"{len(self.conflicts)} conflicting mapping(s): {sample}")
        super().__init__("; ".join(parts) or "alias integrity violation")


class RebuildError(KgproxError):
    """A snapshot rebuild failed; the previous snapshot remains active."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class RebuildCancelled(RebuildError):
    """A rebuild was aborted (e.g. by process shutdown) before it swapped in."""


class SnapshotNotReadyError(KgproxError):
    """No snapshot has been built yet, so queries cannot be served."""
