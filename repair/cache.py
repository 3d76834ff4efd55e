"""Content-addressed cache of test outcomes, persisted across runs.

Compiling and testing a variant is the dominant cost of the search, and
many mutation sequences produce identical programs. Outcomes are keyed by
a digest of the rendered source plus the test, so an identical variant is
never run twice against the same test.
"""

from __future__ import annotations

import hashlib
import os
import pickle
import sys
from pathlib import Path
from typing import Any, Optional

from repair.errors import CacheIOFailure
from repair.model import Test, parse_test

CACHE_FORMAT = "repair-test-cache"
CACHE_VERSION = 1
DEFAULT_CACHE_PATH = "repair.cache"

# What pickle.load can raise on truncated or bit-flipped input.
_UNPICKLE_ERRORS = (
    OSError,
    EOFError,
    pickle.UnpicklingError,
    AttributeError,
    ImportError,
    ValueError,
    TypeError,
    IndexError,
    KeyError,
    MemoryError,
    OverflowError,
    RecursionError,
)


def content_digest(text: str) -> str:
    """Fixed-size fingerprint of rendered program content."""

    return hashlib.md5(text.encode("utf-8")).hexdigest()


class EvaluationCache:
    """Map of (content digest, test) -> passed, plus this run's evaluation set.

    One process owns a cache for the whole run; it is not safe to share
    between concurrent writers.
    """

    def __init__(self, path: str | Path = DEFAULT_CACHE_PATH) -> None:
        self.path = Path(path)
        self._entries: dict[tuple[str, Test], bool] = {}
        self._evaluated: set[tuple[str, Test]] = set()

    def query(self, digest: str, test: Test) -> Optional[bool]:
        """Cached outcome, or ``None`` when this pair was never recorded."""

        return self._entries.get((digest, test))

    def add(self, digest: str, test: Test, result: bool) -> None:
        self._entries[(digest, test)] = bool(result)

    def record_evaluation(self, digest: str, test: Test) -> None:
        """Note that ``(digest, test)`` was actually run this session."""

        self._evaluated.add((digest, test))

    def num_evaluations(self) -> int:
        """Distinct (digest, test) pairs run this session, ignoring the persisted cache."""

        return len(self._evaluated)

    def reset_session(self) -> None:
        self._evaluated.clear()

    def persist(self) -> None:
        """Write every entry to ``self.path``, replacing any previous file."""

        payload = {
            "format": CACHE_FORMAT,
            "version": CACHE_VERSION,
            "entries": [
                (digest, test.name, result)
                for (digest, test), result in sorted(self._entries.items())
            ],
        }
        if self.path.parent and not self.path.parent.exists():
            self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(f"{self.path.name}.tmp.{os.getpid()}")
        try:
            with open(tmp_path, "wb") as file_obj:
                pickle.dump(payload, file_obj, protocol=pickle.HIGHEST_PROTOCOL)
            os.replace(tmp_path, self.path)
        finally:
            if tmp_path.exists():
                tmp_path.unlink()

    def restore(self) -> bool:
        """Load entries from ``self.path``; a missing or bad file leaves the cache empty."""

        try:
            entries = self._read()
        except CacheIOFailure as exc:
            self._entries = {}
            if self.path.exists():
                print(f"[Cache] ignoring {self.path}: {exc}", file=sys.stderr)
            return False
        self._entries = entries
        print(f"[Cache] restored {len(entries)} outcome(s) from {self.path}")
        return True

    def _read(self) -> dict[tuple[str, Test], bool]:
        if not self.path.is_file():
            raise CacheIOFailure(f"{self.path} does not exist")
        try:
            with open(self.path, "rb") as file_obj:
                payload: Any = pickle.load(file_obj)
        except _UNPICKLE_ERRORS as exc:
            raise CacheIOFailure(f"unreadable cache file: {exc}") from exc

        if not isinstance(payload, dict) or payload.get("format") != CACHE_FORMAT:
            raise CacheIOFailure("not a test cache file")
        if payload.get("version") != CACHE_VERSION:
            raise CacheIOFailure(f"unsupported cache version {payload.get('version')!r}")

        entries: dict[tuple[str, Test], bool] = {}
        raw_entries = payload.get("entries")
        if not isinstance(raw_entries, list):
            raise CacheIOFailure("cache entries are malformed")
        for item in raw_entries:
            try:
                digest, name, result = item
                if not isinstance(digest, str) or not isinstance(result, bool):
                    raise ValueError(item)
                entries[(digest, parse_test(name))] = result
            except (TypeError, ValueError) as exc:
                raise CacheIOFailure(f"malformed cache entry {item!r}") from exc
        return entries

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries
