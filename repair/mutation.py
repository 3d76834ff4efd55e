"""Delete / append / swap edits over atom ids, and their text form.

An edit list such as ``"d5 a3,7 s2,4"`` names a variant: apply the edits in
order to a copy of the original representation to rebuild it.
"""

from __future__ import annotations

import random
import re
from dataclasses import dataclass
from typing import Any, Iterable, Optional

from repair.localization import choose_one_weighted
from repair.model import AtomId

OPERATOR_ARITY = {"d": 1, "a": 2, "s": 2}

_EDIT_RE = re.compile(r"^([das])\(?\s*(\d+)\s*(?:,\s*(\d+)\s*)?\)?$")


@dataclass(frozen=True)
class Edit:
    """One destructive mutation applied to a representation."""

    op: str
    atoms: tuple[AtomId, ...]

    def __post_init__(self) -> None:
        arity = OPERATOR_ARITY.get(self.op)
        if arity is None:
            raise ValueError(f"Unknown edit operator {self.op!r}")
        if len(self.atoms) != arity:
            raise ValueError(f"Edit '{self.op}' takes {arity} atom id(s), got {len(self.atoms)}")

    def apply(self, rep: Any) -> None:
        if self.op == "d":
            rep.delete(self.atoms[0])
        elif self.op == "a":
            rep.append(self.atoms[0], self.atoms[1])
        else:
            rep.swap(self.atoms[0], self.atoms[1])

    def __str__(self) -> str:
        return f"{self.op}{','.join(str(atom_id) for atom_id in self.atoms)}"


def delete_edit(atom_id: AtomId) -> Edit:
    return Edit("d", (atom_id,))


def append_edit(dst: AtomId, src: AtomId) -> Edit:
    return Edit("a", (dst, src))


def swap_edit(first: AtomId, second: AtomId) -> Edit:
    return Edit("s", (first, second))


def parse_edit(text: str) -> Edit:
    """Parse ``d5``, ``a3,7``, ``s2,4`` (``a(3,7)`` is accepted too)."""

    match = _EDIT_RE.match(str(text).strip())
    if not match:
        raise ValueError(f"Malformed edit: {text!r}")
    op = match.group(1)
    atoms = tuple(int(group) for group in match.groups()[1:] if group is not None)
    return Edit(op, atoms)


def parse_edits(text: str) -> list[Edit]:
    """Parse a whitespace-separated edit list; an empty string yields no edits."""

    return [parse_edit(token) for token in str(text or "").split()]


def format_edits(edits: Iterable[Edit]) -> str:
    return " ".join(str(edit) for edit in edits)


def apply_edits(rep: Any, edits: Iterable[Edit]) -> Any:
    """Apply ``edits`` in order, in place, and return ``rep``."""

    for edit in edits:
        edit.apply(rep)
    return rep


def random_edit(
    rep: Any,
    rng: Optional[random.Random] = None,
    delete_probability: float = 1.0,
    append_probability: float = 1.0,
    swap_probability: float = 1.0,
) -> Edit:
    """Build (but do not apply) one edit biased by the fault localization.

    The operator is drawn in proportion to the three probabilities, the
    destination atom by localization weight, and the source atom uniformly.
    """

    rng = rng or random.Random()
    weights = [max(0.0, float(p)) for p in (delete_probability, append_probability, swap_probability)]
    if sum(weights) <= 0.0:
        raise ValueError("At least one mutation operator needs a positive probability.")

    max_atom = rep.max_atom()
    if max_atom < 1:
        raise ValueError("Representation has no atoms to mutate.")

    localization = rep.get_localization() or rep.get_full_localization()
    if not any(weight > 0.0 for _, weight in localization):
        localization = [(atom_id, 1.0) for atom_id, _ in localization]
    dst = choose_one_weighted(localization, rng).atom_id

    op = rng.choices(["d", "a", "s"], weights=weights, k=1)[0]
    if op == "d":
        return delete_edit(dst)
    src = rng.randint(1, max_atom)
    return append_edit(dst, src) if op == "a" else swap_edit(dst, src)
