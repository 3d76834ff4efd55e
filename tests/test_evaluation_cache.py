from __future__ import annotations

import io
import pickle
import unittest
from contextlib import redirect_stderr, redirect_stdout
from pathlib import Path
from tempfile import TemporaryDirectory

from repair.cache import CACHE_FORMAT, EvaluationCache, content_digest
from repair.model import Negative, Positive


class EvaluationCacheTests(unittest.TestCase):
    def test_query_unknown_then_add(self) -> None:
        with TemporaryDirectory() as td:
            cache = EvaluationCache(Path(td) / "repair.cache")
            self.assertIsNone(cache.query("abc123", Positive(1)))
            cache.add("abc123", Positive(1), True)
            cache.add("abc123", Negative(1), False)
            self.assertTrue(cache.query("abc123", Positive(1)))
            self.assertFalse(cache.query("abc123", Negative(1)))
            self.assertIsNone(cache.query("xyz", Positive(1)))

    def test_last_write_wins(self) -> None:
        with TemporaryDirectory() as td:
            cache = EvaluationCache(Path(td) / "repair.cache")
            cache.add("abc123", Positive(2), True)
            cache.add("abc123", Positive(2), False)
            self.assertFalse(cache.query("abc123", Positive(2)))
            self.assertEqual(len(cache), 1)

    def test_persist_then_restore_in_fresh_instance(self) -> None:
        with TemporaryDirectory() as td:
            path = Path(td) / "nested" / "repair.cache"
            cache = EvaluationCache(path)
            cache.add("abc123", Positive(1), True)
            cache.add("abc123", Negative(1), False)
            cache.persist()

            fresh = EvaluationCache(path)
            self.assertTrue(fresh.restore())
            self.assertTrue(fresh.query("abc123", Positive(1)))
            self.assertFalse(fresh.query("abc123", Negative(1)))
            self.assertIsNone(fresh.query("xyz", Positive(1)))

    def test_persist_overwrites_previous_file(self) -> None:
        with TemporaryDirectory() as td:
            path = Path(td) / "repair.cache"
            first = EvaluationCache(path)
            first.add("old", Positive(1), True)
            first.persist()
            second = EvaluationCache(path)
            second.add("new", Positive(1), False)
            second.persist()

            fresh = EvaluationCache(path)
            fresh.restore()
            self.assertIsNone(fresh.query("old", Positive(1)))
            self.assertFalse(fresh.query("new", Positive(1)))
            self.assertEqual(sorted(p.name for p in Path(td).iterdir()), ["repair.cache"])

    def test_missing_corrupt_or_foreign_file_restores_empty(self) -> None:
        with TemporaryDirectory() as td:
            missing = EvaluationCache(Path(td) / "missing.cache")
            self.assertFalse(missing.restore())
            self.assertEqual(len(missing), 0)

            corrupt_path = Path(td) / "corrupt.cache"
            corrupt_path.write_bytes(b"\x00not a pickle at all")
            corrupt = EvaluationCache(corrupt_path)
            self.assertFalse(corrupt.restore())
            self.assertEqual(len(corrupt), 0)

            foreign_path = Path(td) / "foreign.cache"
            foreign_path.write_bytes(pickle.dumps({"format": "something-else", "entries": []}))
            self.assertFalse(EvaluationCache(foreign_path).restore())

            bad_entries = Path(td) / "bad_entries.cache"
            bad_entries.write_bytes(
                pickle.dumps({"format": CACHE_FORMAT, "version": 1, "entries": [("abc", "q9", True)]})
            )
            self.assertFalse(EvaluationCache(bad_entries).restore())

    def test_damaged_copies_of_a_valid_file_never_escape_restore(self) -> None:
        with TemporaryDirectory() as td:
            path = Path(td) / "repair.cache"
            cache = EvaluationCache(path)
            for i in range(1, 21):
                cache.add(content_digest(f"variant {i}"), Positive(i), i % 2 == 0)
                cache.add(content_digest(f"variant {i}"), Negative(1), False)
            cache.persist()
            pristine = path.read_bytes()

            damaged = [pristine[:cut] for cut in range(len(pristine))]
            for index in range(len(pristine)):
                flipped = bytearray(pristine)
                flipped[index] ^= 0xFF
                damaged.append(bytes(flipped))

            with redirect_stderr(io.StringIO()), redirect_stdout(io.StringIO()):
                for data in damaged:
                    path.write_bytes(data)
                    fresh = EvaluationCache(path)
                    if not fresh.restore():
                        self.assertEqual(len(fresh), 0)

    def test_oversized_frame_header_restores_empty(self) -> None:
        with TemporaryDirectory() as td:
            path = Path(td) / "repair.cache"
            # protocol 5 FRAME opcode announcing an absurd frame length
            path.write_bytes(b"\x80\x05\x95" + b"\xff" * 8 + b"}")
            cache = EvaluationCache(path)
            with redirect_stderr(io.StringIO()):
                self.assertFalse(cache.restore())
            self.assertEqual(len(cache), 0)

    def test_session_evaluations_count_distinct_pairs(self) -> None:
        with TemporaryDirectory() as td:
            cache = EvaluationCache(Path(td) / "repair.cache")
            cache.record_evaluation("abc123", Positive(1))
            cache.record_evaluation("abc123", Positive(1))
            cache.record_evaluation("abc123", Negative(1))
            self.assertEqual(cache.num_evaluations(), 2)
            cache.reset_session()
            self.assertEqual(cache.num_evaluations(), 0)

    def test_content_digest_is_stable_and_content_sensitive(self) -> None:
        self.assertEqual(content_digest("x = 1\n"), content_digest("x = 1\n"))
        self.assertNotEqual(content_digest("x = 1\n"), content_digest("x = 2\n"))
        self.assertEqual(len(content_digest("")), 32)


if __name__ == "__main__":
    unittest.main()
