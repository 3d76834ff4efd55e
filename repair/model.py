"""Atom addressing model and oracle test references.

An atom is the smallest independently mutable unit of a program
representation: a simple statement of a Python module, a line of an
assembly listing, and so on. Atoms are addressed by ``AtomId`` values in
the inclusive range ``1..max_atom()``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

from repair.errors import InvalidAtom

AtomId = int


class RenumberPolicy(str, Enum):
    """How a backend keeps atom ids consistent after delete and append.

    ``TOMBSTONE``: a deleted atom leaves an empty slot behind, so every id
    stays valid and ``max_atom()`` never changes. Append grows the
    destination slot instead of creating a new atom.

    ``COMPACT``: a deleted atom disappears, ids above it shift down and
    ``max_atom()`` shrinks by one. Append inserts a new atom right after
    the destination, shifting ids above it up.
    """

    TOMBSTONE = "tombstone"
    COMPACT = "compact"


def check_atom(atom_id: AtomId, max_atom: int) -> AtomId:
    """Return ``atom_id`` unchanged or raise ``InvalidAtom``."""

    if isinstance(atom_id, bool) or not isinstance(atom_id, int):
        raise InvalidAtom(atom_id, max_atom)
    if atom_id < 1 or atom_id > max_atom:
        raise InvalidAtom(atom_id, max_atom)
    return atom_id


def atom_range(max_atom: int) -> range:
    """All valid atom ids for a representation with ``max_atom`` atoms."""

    return range(1, max(0, int(max_atom)) + 1)


_TEST_NAME_RE = re.compile(r"^\s*([pn])(\d+)\s*$")


@dataclass(frozen=True, order=True)
class Test:
    """One oracle test: positive tests pass on the original program, negative ones fail."""

    __test__ = False  # keep pytest from collecting this class

    polarity: str
    index: int

    def __post_init__(self) -> None:
        if self.polarity not in {"p", "n"}:
            raise ValueError(f"Test polarity must be 'p' or 'n', got {self.polarity!r}")
        if int(self.index) < 1:
            raise ValueError(f"Test index must be >= 1, got {self.index!r}")

    @property
    def positive(self) -> bool:
        return self.polarity == "p"

    @property
    def name(self) -> str:
        return f"{self.polarity}{self.index}"

    def __str__(self) -> str:
        return self.name


def Positive(index: int) -> Test:
    return Test("p", int(index))


def Negative(index: int) -> Test:
    return Test("n", int(index))


def test_name(test: Test) -> str:
    """Render a test as ``p<i>`` / ``n<i>`` for commands and cache files."""

    return test.name


test_name.__test__ = False  # type: ignore[attr-defined]


def parse_test(text: str) -> Test:
    """Inverse of ``test_name``."""

    match = _TEST_NAME_RE.match(str(text))
    if not match:
        raise ValueError(f"Not a test name: {text!r}")
    return Test(match.group(1), int(match.group(2)))


def all_tests(pos_tests: int, neg_tests: int) -> list[Test]:
    """Positive tests 1..pos_tests followed by negative tests 1..neg_tests."""

    return [Positive(i) for i in range(1, pos_tests + 1)] + [Negative(i) for i in range(1, neg_tests + 1)]
