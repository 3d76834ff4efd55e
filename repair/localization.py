"""Fault-localization store: suspiciousness weights over atoms."""

from __future__ import annotations

import random
import re
from pathlib import Path
from typing import Iterable, NamedTuple, Optional, Sequence

from repair.errors import FaultLocalizationFailure
from repair.model import AtomId, atom_range

FAULT_SCHEMES = ("path", "uniform", "line")


class LocalizationEntry(NamedTuple):
    """One (atom, weight) pair; weight is in [0, 1]."""

    atom_id: AtomId
    weight: float


def _check_weight(weight: float) -> float:
    value = float(weight)
    if not 0.0 <= value <= 1.0:
        raise ValueError(f"Localization weight must be within [0, 1], got {weight!r}")
    return value


class FaultLocalization:
    """At most one weight per atom, kept consistent with the atom numbering."""

    def __init__(self, weights: Optional[dict[AtomId, float]] = None) -> None:
        self._weights: dict[AtomId, float] = {}
        for atom_id, weight in (weights or {}).items():
            self.set(atom_id, weight)

    def set(self, atom_id: AtomId, weight: float) -> None:
        self._weights[int(atom_id)] = _check_weight(weight)

    def weight(self, atom_id: AtomId, default: float = 0.0) -> float:
        return self._weights.get(int(atom_id), default)

    def entries(self) -> list[LocalizationEntry]:
        """Entries with a positive weight, ordered by atom id."""

        return [
            LocalizationEntry(atom_id, weight)
            for atom_id, weight in sorted(self._weights.items())
            if weight > 0.0
        ]

    def full(self, max_atom: int, default: float = 0.0) -> list[LocalizationEntry]:
        """One entry for every atom 1..max_atom, ``default`` where none is stored."""

        return [LocalizationEntry(atom_id, self._weights.get(atom_id, default)) for atom_id in atom_range(max_atom)]

    def remove_atom(self, atom_id: AtomId) -> None:
        """Drop ``atom_id`` and shift every higher id down by one."""

        shifted: dict[AtomId, float] = {}
        for current, weight in self._weights.items():
            if current < atom_id:
                shifted[current] = weight
            elif current > atom_id:
                shifted[current - 1] = weight
        self._weights = shifted

    def insert_atom_after(self, atom_id: AtomId, weight: Optional[float] = None) -> None:
        """Shift ids above ``atom_id`` up by one and give the new atom ``weight``."""

        shifted = {
            (current + 1 if current > atom_id else current): value
            for current, value in self._weights.items()
        }
        self._weights = shifted
        if weight is not None:
            self.set(atom_id + 1, weight)

    def __len__(self) -> int:
        return len(self._weights)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FaultLocalization):
            return NotImplemented
        return self._weights == other._weights

    def __repr__(self) -> str:
        return f"FaultLocalization({dict(sorted(self._weights.items()))!r})"


def choose_one_weighted(
    entries: Sequence[tuple[AtomId, float]],
    rng: Optional[random.Random] = None,
) -> LocalizationEntry:
    """Pick one entry with probability proportional to its weight."""

    if not entries:
        raise ValueError("Cannot choose from an empty localization.")
    total = sum(float(weight) for _, weight in entries)
    if total <= 0.0:
        raise ValueError("Cannot choose from a localization whose weights sum to zero.")

    wanted = (rng or random).uniform(0.0, total)
    so_far = 0.0
    for atom_id, weight in entries:
        so_far += float(weight)
        if so_far >= wanted and weight > 0.0:
            return LocalizationEntry(atom_id, float(weight))
    # Float rounding can leave ``wanted`` a hair above the running sum.
    atom_id, weight = next((a, w) for a, w in reversed(list(entries)) if w > 0.0)
    return LocalizationEntry(atom_id, float(weight))


_FAULT_LINE_RE = re.compile(r"[,\s]+")


def read_fault_file(path: str | Path) -> list[tuple[int, float]]:
    """Read ``line[,weight]`` rows; blank rows and ``#`` comments are skipped."""

    fault_path = Path(path)
    try:
        text = fault_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise FaultLocalizationFailure(f"Cannot read fault file {fault_path}: {exc}") from exc

    rows: list[tuple[int, float]] = []
    for number, raw_line in enumerate(text.splitlines(), start=1):
        line = raw_line.split("#", 1)[0].strip()
        if not line:
            continue
        parts = [part for part in _FAULT_LINE_RE.split(line) if part]
        try:
            source_line = int(parts[0])
            weight = _check_weight(parts[1]) if len(parts) > 1 else 1.0
        except ValueError as exc:
            raise FaultLocalizationFailure(f"{fault_path}:{number}: malformed fault entry {raw_line!r}") from exc
        rows.append((source_line, weight))
    return rows


def path_weights(
    negative_path: Iterable[AtomId],
    positive_path: Iterable[AtomId],
    negative_weight: float = 1.0,
    positive_weight: float = 0.1,
) -> dict[AtomId, float]:
    """Weight atoms visited by failing tests, discounting those positive tests also visit."""

    on_positive = set(positive_path)
    return {
        atom_id: (positive_weight if atom_id in on_positive else negative_weight)
        for atom_id in sorted(set(negative_path))
    }
