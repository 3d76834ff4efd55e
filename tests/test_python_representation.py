from __future__ import annotations

import ast
import pickle
import unittest
from pathlib import Path
from tempfile import TemporaryDirectory

from repair.config import RepairConfig
from repair.errors import InvalidAtom
from repair.model import RenumberPolicy
from repair.representation import snapshot_backend
from representations.lines import LineRepresentation
from representations.python_ast import PythonRepresentation

PROGRAM = '''"""Absolute values."""
from __future__ import annotations


def absolute(value):
    if value < 0:
        value = value
    return value


def negate(value):
    value = -value
    return value


print(absolute(-3))
'''


def _rep(source: str = PROGRAM) -> PythonRepresentation:
    rep = PythonRepresentation(config=RepairConfig(fault_scheme="uniform", progress=False))
    rep.from_source(source)
    return rep


class PythonParsingTests(unittest.TestCase):
    def test_simple_statements_are_atoms(self) -> None:
        rep = _rep()
        self.assertIs(PythonRepresentation.renumbering, RenumberPolicy.TOMBSTONE)
        self.assertEqual(rep.max_atom(), 5)
        self.assertEqual(rep.slot_source(1), "value = value")
        self.assertEqual(rep.slot_source(3), "value = -value")
        self.assertEqual(rep.slot_source(5), "print(absolute(-3))")

    def test_header_is_not_mutable(self) -> None:
        rendered = _rep().output_source()
        tree = ast.parse(rendered)
        self.assertEqual(ast.get_docstring(tree), "Absolute values.")
        self.assertIn("from __future__ import annotations", rendered)

    def test_render_round_trip_is_stable(self) -> None:
        rep = _rep()
        rendered = rep.output_source()
        again = _rep(rendered)
        self.assertEqual(again.output_source(), rendered)
        self.assertEqual(again.max_atom(), rep.max_atom())

    def test_plain_module_renders_verbatim(self) -> None:
        rep = _rep("x = 1\ny = x + 1\nprint(y)\n")
        self.assertEqual(rep.output_source(), "x = 1\ny = x + 1\nprint(y)\n")

    def test_atoms_at_line_use_original_spans(self) -> None:
        rep = _rep()
        self.assertEqual(rep.atoms_at_line(7), [1])
        self.assertEqual(rep.atoms_at_line(16), [5])
        self.assertEqual(rep.atoms_at_line(5), [])

    def test_rejects_invalid_python(self) -> None:
        with self.assertRaises(SyntaxError):
            _rep("def broken(:\n")


class PythonMutationTests(unittest.TestCase):
    def test_delete_leaves_a_tombstone(self) -> None:
        rep = _rep()
        rep.delete(1)
        self.assertEqual(rep.max_atom(), 5)
        self.assertEqual(rep.slot_source(1), "")
        rep.delete(1)
        self.assertEqual(rep.max_atom(), 5)
        # the emptied if-body still renders as valid Python
        compile(rep.output_source(), "<variant>", "exec")
        self.assertIn("pass", rep.output_source())

    def test_append_grows_destination_slot(self) -> None:
        rep = _rep()
        rep.append(1, 3)
        self.assertEqual(rep.max_atom(), 5)
        self.assertEqual(rep.slot_source(1), "value = value\nvalue = -value")
        rep.append(5, 5)
        self.assertEqual(rep.slot_source(5), "print(absolute(-3))\nprint(absolute(-3))")

    def test_swap_twice_restores_and_self_swap_is_noop(self) -> None:
        rep = _rep()
        original = rep.output_source()
        rep.swap(1, 3)
        self.assertIn("if value < 0:\n        value = -value", rep.output_source())
        rep.swap(1, 3)
        self.assertEqual(rep.output_source(), original)
        rep.swap(2, 2)
        self.assertEqual(rep.name(), "s1,3 s1,3")

    def test_invalid_atoms_raise(self) -> None:
        rep = _rep()
        for call in (lambda: rep.delete(0), lambda: rep.delete(6), lambda: rep.append(1, 9), lambda: rep.swap(-1, 2)):
            with self.assertRaises(InvalidAtom):
                call()
        self.assertEqual(rep.history, ())

    def test_emptied_try_finally_still_compiles(self) -> None:
        rep = _rep("try:\n    x = 1\nfinally:\n    y = 2\n")
        self.assertEqual(rep.max_atom(), 2)
        rep.delete(2)
        compile(rep.output_source(), "<variant>", "exec")
        rep.delete(1)
        rendered = rep.output_source()
        compile(rendered, "<variant>", "exec")
        self.assertNotIn("x = 1", rendered)
        self.assertNotIn("y = 2", rendered)

    def test_copy_is_independent(self) -> None:
        rep = _rep()
        rep.compute_fault_localization()
        before_source = rep.output_source()
        before_localization = rep.get_full_localization()

        clone = rep.copy()
        clone.delete(3)
        clone.append(1, 5)
        clone._localization.set(2, 0.0)

        self.assertEqual(rep.output_source(), before_source)
        self.assertEqual(rep.get_full_localization(), before_localization)
        self.assertEqual(rep.max_atom(), 5)
        self.assertEqual(rep.name(), "original")
        self.assertIs(clone.config, rep.config)
        self.assertIs(clone.stats, rep.stats)


class PythonSnapshotTests(unittest.TestCase):
    def test_binary_round_trip(self) -> None:
        with TemporaryDirectory() as td:
            rep = _rep()
            rep.compute_fault_localization()
            rep.swap(1, 3)
            path = Path(td) / "rep.bin"
            rep.save_binary(path)

            loaded = PythonRepresentation(config=rep.config)
            loaded.load_binary(path)
            self.assertEqual(loaded.max_atom(), rep.max_atom())
            self.assertEqual(loaded.get_full_localization(), rep.get_full_localization())
            self.assertEqual(loaded.output_source(), rep.output_source())
            self.assertEqual(loaded.name(), "s1,3")

    def test_loading_another_backend_snapshot_fails(self) -> None:
        with TemporaryDirectory() as td:
            path = Path(td) / "rep.bin"
            _rep().save_binary(path)
            with self.assertRaises(ValueError):
                LineRepresentation().load_binary(path)

    def test_snapshot_names_its_backend(self) -> None:
        with TemporaryDirectory() as td:
            python_path = Path(td) / "python.bin"
            _rep().save_binary(python_path)
            lines = LineRepresentation()
            lines.from_source("nop\n")
            lines_path = Path(td) / "lines.bin"
            lines.save_binary(lines_path)

            self.assertEqual(snapshot_backend(python_path), "python")
            self.assertEqual(snapshot_backend(lines_path), "lines")

            stray = Path(td) / "stray.bin"
            stray.write_bytes(pickle.dumps({"format": "something-else"}))
            with self.assertRaises(ValueError):
                snapshot_backend(stray)


class InstrumentationTests(unittest.TestCase):
    def test_instrumented_source_reports_every_atom(self) -> None:
        instrumented = _rep().instrumented_source()
        tree = ast.parse(instrumented)
        reported = sorted(
            node.args[0].value
            for node in ast.walk(tree)
            if isinstance(node, ast.Call) and isinstance(node.func, ast.Name) and node.func.id == "__repair_probe__"
        )
        self.assertEqual(reported, [1, 2, 3, 4, 5])
        self.assertEqual(ast.get_docstring(tree), "Absolute values.")
        self.assertIn("REPAIR_COVERAGE_FILE", instrumented)


if __name__ == "__main__":
    unittest.main()
