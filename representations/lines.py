"""Line-oriented programs (assembly listings, scripts) with one atom per line."""

from __future__ import annotations

from repair.model import AtomId, RenumberPolicy
from repair.representation import Representation
from representations.base import register_representation


@register_representation("lines", extensions=(".s", ".asm", ".txt"))
class LineRepresentation(Representation):
    """Each line is an atom; deletes and appends renumber the lines after them."""

    renumbering = RenumberPolicy.COMPACT

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._lines: list[str] = []

    def from_source(self, text: str) -> None:
        # only "\n" ends an atom; other line-break characters stay inside the line
        lines = text.split("\n")
        if lines[-1] == "":
            lines.pop()
        self._lines = lines
        self._reset_program_state()

    def output_source(self) -> str:
        if not self._lines:
            return ""
        return "\n".join(self._lines) + "\n"

    def max_atom(self) -> int:
        return len(self._lines)

    def atoms_at_line(self, line: int) -> list[AtomId]:
        return [line] if 1 <= line <= len(self._lines) else []

    def line(self, atom_id: AtomId) -> str:
        return self._lines[atom_id - 1]

    def _delete(self, atom_id: AtomId) -> None:
        del self._lines[atom_id - 1]

    def _append(self, dst: AtomId, src: AtomId) -> None:
        self._lines.insert(dst, self._lines[src - 1])

    def _swap(self, first: AtomId, second: AtomId) -> None:
        lines = self._lines
        lines[first - 1], lines[second - 1] = lines[second - 1], lines[first - 1]

    def debug_info(self) -> None:
        print(f"[Debug] lines representation: {self.max_atom()} atoms, variant {self.name()}")
        for atom_id, text in enumerate(self._lines, start=1):
            weight = self._localization.weight(atom_id, self.config.untouched_weight)
            print(f"  {atom_id:>4} w={weight:.2f} {text}")
