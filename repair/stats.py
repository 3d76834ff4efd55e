"""Run-wide compile and test counters shared by every representation copy."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass
class RunStats:
    """Counters for the costly external steps of one run."""

    compile_attempts: int = 0
    compile_failures: int = 0
    test_evaluations: int = 0
    test_timeouts: int = 0
    cache_hits: int = 0

    def record_compile(self, success: bool) -> None:
        self.compile_attempts += 1
        if not success:
            self.compile_failures += 1

    def record_test(self, timed_out: bool = False) -> None:
        self.test_evaluations += 1
        if timed_out:
            self.test_timeouts += 1

    def record_cache_hit(self) -> None:
        self.cache_hits += 1

    def summary(self) -> dict[str, Any]:
        """Return a snapshot of all counters."""

        lookups = self.test_evaluations + self.cache_hits
        return {
            "compile_attempts": self.compile_attempts,
            "compile_failures": self.compile_failures,
            "test_evaluations": self.test_evaluations,
            "test_timeouts": self.test_timeouts,
            "cache_hits": self.cache_hits,
            "cache_hit_rate": (self.cache_hits / lookups) if lookups else 0.0,
        }

    def reset(self) -> None:
        self.compile_attempts = 0
        self.compile_failures = 0
        self.test_evaluations = 0
        self.test_timeouts = 0
        self.cache_hits = 0
