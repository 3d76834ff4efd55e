"""Error taxonomy for representations, mutations, and the evaluation cache."""

from __future__ import annotations

from typing import Any


class RepairError(Exception):
    """Base class for errors raised by the repair core."""


class Unimplemented(RepairError, NotImplementedError):
    """A backend does not provide an operation the run needs."""

    def __init__(self, operation: str, backend: str = "") -> None:
        self.operation = operation
        self.backend = backend
        where = f" by backend '{backend}'" if backend else ""
        super().__init__(f"Operation '{operation}' is not implemented{where}.")


class InvalidAtom(RepairError, IndexError):
    """An atom id outside 1..max_atom() was passed to a mutation."""

    def __init__(self, atom_id: Any, max_atom: int) -> None:
        self.atom_id = atom_id
        self.max_atom = max_atom
        super().__init__(f"Atom id {atom_id!r} is outside the valid range 1..{max_atom}.")


class SanityCheckFailure(RepairError):
    """The unmodified program does not compile or does not match the oracle."""

    def __init__(self, reason: str, failures: list[str] | None = None) -> None:
        self.reason = reason
        self.failures = list(failures or [])
        detail = f" ({', '.join(self.failures)})" if self.failures else ""
        super().__init__(f"Sanity check failed: {reason}{detail}")


class FaultLocalizationFailure(RepairError):
    """Fault localization could not be computed for the current program."""


class CacheIOFailure(RepairError):
    """A persisted cache file is missing, unreadable, or malformed."""
