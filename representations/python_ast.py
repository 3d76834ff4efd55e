"""Python modules as atom-addressed statement slots.

Every simple (non-compound) statement of the module is an atom. The parsed
tree is kept as a template in which each atom is replaced by a placeholder
call; the statements themselves live in per-atom slots. Rendering expands
the placeholders back into their slots, so deletes leave an empty slot
(the id stays valid) and appends grow the destination slot.

Rendering goes through ``ast.unparse``: comments and original formatting
are not preserved, and the sanity check runs on the normalized text.
"""

from __future__ import annotations

import ast
import copy
from typing import Iterator, Optional

from repair.external import COVERAGE_ENV_VAR
from repair.model import AtomId, RenumberPolicy
from repair.representation import Representation
from representations.base import register_representation

PLACEHOLDER_NAME = "__repair_atom__"
PROBE_NAME = "__repair_probe__"

PROBE_PROLOGUE = f'''
import os as __repair_os__


def {PROBE_NAME}(atom_id):
    path = __repair_os__.environ.get({COVERAGE_ENV_VAR!r})
    if path:
        with open(path, "a", encoding="utf-8") as handle:
            handle.write(f"{{atom_id}}\\n")
'''


def _call_stmt(name: str, atom_id: AtomId) -> ast.stmt:
    return ast.Expr(
        value=ast.Call(func=ast.Name(id=name, ctx=ast.Load()), args=[ast.Constant(value=atom_id)], keywords=[])
    )


def _placeholder_id(node: ast.AST) -> Optional[AtomId]:
    if not isinstance(node, ast.Expr) or not isinstance(node.value, ast.Call):
        return None
    call = node.value
    if not isinstance(call.func, ast.Name) or call.func.id != PLACEHOLDER_NAME or len(call.args) != 1:
        return None
    arg = call.args[0]
    if isinstance(arg, ast.Constant) and isinstance(arg.value, int):
        return arg.value
    return None


def _statement_lists(node: ast.AST) -> Iterator[tuple[ast.AST, str]]:
    """(owner, field) for every nested statement list of a compound statement."""

    for field, value in ast.iter_fields(node):
        if not isinstance(value, list) or not value:
            continue
        if all(isinstance(item, ast.stmt) for item in value):
            yield node, field
            continue
        for item in value:
            # except handlers and match cases hold their own bodies
            if isinstance(item, ast.AST) and isinstance(getattr(item, "body", None), list):
                yield item, "body"


def _is_header(stmt: ast.stmt, index: int) -> bool:
    if index == 0 and isinstance(stmt, ast.Expr) and isinstance(stmt.value, ast.Constant):
        return isinstance(stmt.value.value, str)
    return isinstance(stmt, ast.ImportFrom) and stmt.module == "__future__"


class _SlotExpander(ast.NodeTransformer):
    """Replace placeholders by their slot contents, optionally behind a probe."""

    def __init__(self, slots: dict[AtomId, list[ast.stmt]], instrument: bool = False) -> None:
        self.slots = slots
        self.instrument = instrument

    def visit_Expr(self, node: ast.Expr):
        atom_id = _placeholder_id(node)
        if atom_id is None:
            return node
        contents = copy.deepcopy(self.slots.get(atom_id, []))
        if self.instrument:
            contents.insert(0, _call_stmt(PROBE_NAME, atom_id))
        return contents


_TRY_NODES = tuple(getattr(ast, name) for name in ("Try", "TryStar") if hasattr(ast, name))


class _EmptyBodyFiller(ast.NodeVisitor):
    def generic_visit(self, node: ast.AST) -> None:
        if isinstance(getattr(node, "body", None), list) and not node.body and not isinstance(node, ast.Module):
            node.body = [ast.Pass()]
        # a try with no handlers needs a non-empty finally clause
        if isinstance(node, _TRY_NODES) and not node.handlers and not node.finalbody:
            node.finalbody = [ast.Pass()]
        super().generic_visit(node)


@register_representation("python", extensions=(".py",))
class PythonRepresentation(Representation):
    """Statement-level representation of a single Python module."""

    renumbering = RenumberPolicy.TOMBSTONE
    source_suffix = ".py"

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._header: list[ast.stmt] = []
        self._template = ast.Module(body=[], type_ignores=[])
        self._slots: dict[AtomId, list[ast.stmt]] = {}
        self._spans: dict[AtomId, tuple[int, int]] = {}

    def from_source(self, text: str) -> None:
        tree = ast.parse(text)
        header: list[ast.stmt] = []
        body = list(tree.body)
        while body and _is_header(body[0], len(header)):
            header.append(body.pop(0))

        self._header = header
        self._slots = {}
        self._spans = {}
        self._template = ast.Module(body=self._number_statements(body), type_ignores=[])
        self._reset_program_state()

    def _number_statements(self, statements: list[ast.stmt]) -> list[ast.stmt]:
        numbered: list[ast.stmt] = []
        for stmt in statements:
            nested = list(_statement_lists(stmt))
            if nested:
                for owner, field in nested:
                    setattr(owner, field, self._number_statements(getattr(owner, field)))
                numbered.append(stmt)
                continue
            atom_id = len(self._slots) + 1
            self._slots[atom_id] = [stmt]
            self._spans[atom_id] = (stmt.lineno, getattr(stmt, "end_lineno", None) or stmt.lineno)
            numbered.append(_call_stmt(PLACEHOLDER_NAME, atom_id))
        return numbered

    def max_atom(self) -> int:
        return len(self._slots)

    def _render(self, instrument: bool = False) -> str:
        module = copy.deepcopy(self._template)
        module = _SlotExpander(self._slots, instrument=instrument).visit(module)
        _EmptyBodyFiller().visit(module)

        prologue = ast.parse(PROBE_PROLOGUE).body if instrument else []
        module.body = copy.deepcopy(self._header) + prologue + module.body
        ast.fix_missing_locations(module)
        if not module.body:
            return ""
        return ast.unparse(module) + "\n"

    def output_source(self) -> str:
        return self._render()

    def instrumented_source(self) -> str:
        return self._render(instrument=True)

    def atoms_at_line(self, line: int) -> list[AtomId]:
        return [atom_id for atom_id, (start, end) in sorted(self._spans.items()) if start <= line <= end]

    def _delete(self, atom_id: AtomId) -> None:
        self._slots[atom_id] = []

    def _append(self, dst: AtomId, src: AtomId) -> None:
        self._slots[dst].extend(copy.deepcopy(self._slots[src]))

    def _swap(self, first: AtomId, second: AtomId) -> None:
        self._slots[first], self._slots[second] = self._slots[second], self._slots[first]

    def slot_source(self, atom_id: AtomId) -> str:
        """Current text of one atom's slot; empty once deleted."""

        return "\n".join(ast.unparse(stmt) for stmt in self._slots[atom_id])

    def debug_info(self) -> None:
        print(f"[Debug] python representation: {self.max_atom()} atoms, variant {self.name()}")
        for atom_id in sorted(self._slots):
            start, end = self._spans.get(atom_id, (0, 0))
            preview = self.slot_source(atom_id).splitlines()
            first = preview[0] if preview else "<deleted>"
            if len(preview) > 1:
                first += f" ... (+{len(preview) - 1} lines)"
            weight = self._localization.weight(atom_id, self.config.untouched_weight)
            print(f"  {atom_id:>4} L{start}-{end} w={weight:.2f} {first}")
