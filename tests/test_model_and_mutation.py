from __future__ import annotations

import random
import unittest

from repair import model
from repair.errors import InvalidAtom
from repair.model import Negative, Positive, all_tests, check_atom, parse_test
from repair.mutation import Edit, format_edits, parse_edit, parse_edits, random_edit
from representations.lines import LineRepresentation


def _lines_rep(count: int) -> LineRepresentation:
    rep = LineRepresentation()
    rep.from_source("".join(f"line {i}\n" for i in range(1, count + 1)))
    return rep


class OracleTestModelTests(unittest.TestCase):
    def test_names_round_trip_and_identity(self) -> None:
        self.assertEqual(model.test_name(Positive(3)), "p3")
        self.assertEqual(model.test_name(Negative(1)), "n1")
        self.assertEqual(parse_test("p3"), Positive(3))
        self.assertNotEqual(Positive(1), Negative(1))
        self.assertEqual(len({Positive(1), Positive(1), Negative(1)}), 2)

    def test_all_tests_lists_positives_then_negatives(self) -> None:
        self.assertEqual([t.name for t in all_tests(2, 1)], ["p1", "p2", "n1"])
        self.assertEqual(all_tests(0, 0), [])

    def test_rejects_bad_tests(self) -> None:
        with self.assertRaises(ValueError):
            Positive(0)
        with self.assertRaises(ValueError):
            parse_test("x1")

    def test_check_atom_never_clamps(self) -> None:
        self.assertEqual(check_atom(4, 4), 4)
        for bad in (0, 5, -1, True, "2"):
            with self.assertRaises(InvalidAtom):
                check_atom(bad, 4)
        with self.assertRaises(IndexError):
            check_atom(9, 4)


class EditListTests(unittest.TestCase):
    def test_parse_and_format(self) -> None:
        edits = parse_edits("d5 a3,7  s2,4")
        self.assertEqual(edits, [Edit("d", (5,)), Edit("a", (3, 7)), Edit("s", (2, 4))])
        self.assertEqual(format_edits(edits), "d5 a3,7 s2,4")
        self.assertEqual(parse_edit("a(3,7)"), Edit("a", (3, 7)))
        self.assertEqual(parse_edits(""), [])

    def test_malformed_edits_are_rejected(self) -> None:
        for text in ("d", "a3", "d3,4", "x1", "s1,"):
            with self.assertRaises(ValueError):
                parse_edit(text)

    def test_applied_edits_become_the_variant_name(self) -> None:
        rep = _lines_rep(5)
        self.assertEqual(rep.name(), "original")
        for edit in parse_edits("d5 a3,1 s2,4"):
            edit.apply(rep)
        self.assertEqual(rep.name(), "d5 a3,1 s2,4")

    def test_random_edit_targets_localized_atoms(self) -> None:
        rep = _lines_rep(6)
        rep._localization.set(4, 1.0)
        rng = random.Random(7)
        for _ in range(25):
            edit = random_edit(rep, rng)
            self.assertEqual(edit.atoms[0], 4)
            self.assertTrue(all(1 <= atom_id <= 6 for atom_id in edit.atoms))

    def test_random_edit_respects_operator_probabilities(self) -> None:
        rep = _lines_rep(3)
        rng = random.Random(1)
        ops = {random_edit(rep, rng, delete_probability=0.0, swap_probability=0.0).op for _ in range(10)}
        self.assertEqual(ops, {"a"})
        with self.assertRaises(ValueError):
            random_edit(rep, rng, delete_probability=0.0, append_probability=0.0, swap_probability=0.0)


if __name__ == "__main__":
    unittest.main()
