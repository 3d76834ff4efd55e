"""Program-representation contract shared by every backend.

A backend supplies parsing, rendering, the atom count, and the three raw
mutations. Everything else (validation, localization bookkeeping, copies,
snapshots, compile/test plumbing, caching, sanity checking) is built here
on top of those operations.

Mutations are destructive and in place. ``copy()`` is the only sanctioned
branch point: exploring two alternatives from one representation without
copying it first is a caller error.
"""

from __future__ import annotations

import copy
import pickle
import sys
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from tqdm import tqdm

from repair.cache import EvaluationCache, content_digest
from repair.config import RepairConfig
from repair.errors import FaultLocalizationFailure, SanityCheckFailure, Unimplemented
from repair.external import COVERAGE_ENV_VAR, Compiler, TestHarness, TestOutcome
from repair.localization import FaultLocalization, LocalizationEntry, path_weights, read_fault_file
from repair.model import AtomId, RenumberPolicy, Test, all_tests, atom_range, check_atom
from repair.mutation import Edit, append_edit, delete_edit, format_edits, swap_edit
from repair.stats import RunStats

SNAPSHOT_FORMAT = "repair-representation"
SNAPSHOT_VERSION = 1


@dataclass
class CompiledVariant:
    """The most recently compiled rendering of a representation."""

    digest: str
    success: bool
    source: Path
    executable: Optional[Path] = None


class Representation(ABC):
    """Abstract program representation addressed by atom ids 1..max_atom()."""

    key: str = "base"
    renumbering: RenumberPolicy = RenumberPolicy.TOMBSTONE
    source_suffix: str = ""

    # Collaborators shared by reference between copies and never serialized.
    _SHARED_ATTRS = ("config", "cache", "stats", "compiler", "harness")
    _TRANSIENT_ATTRS = ("_compiled",)

    def __init__(
        self,
        config: Optional[RepairConfig] = None,
        cache: Optional[EvaluationCache] = None,
        stats: Optional[RunStats] = None,
        compiler: Any = None,
        harness: Any = None,
    ) -> None:
        self.config = config or RepairConfig()
        self.cache = cache
        self.stats = stats or RunStats()
        self.compiler = compiler or Compiler(self.config)
        self.harness = harness or TestHarness(self.config)
        self._localization = FaultLocalization()
        self._history: list[Edit] = []
        self._compiled: Optional[CompiledVariant] = None

    # ------------------------------------------------------------------
    # Backend operations
    # ------------------------------------------------------------------

    @abstractmethod
    def from_source(self, text: str) -> None:
        """Parse program text into atoms, replacing any current state."""

    @abstractmethod
    def output_source(self) -> str:
        """Render the current state as program text."""

    @abstractmethod
    def max_atom(self) -> int:
        """Current inclusive atom count."""

    @abstractmethod
    def _delete(self, atom_id: AtomId) -> None:
        """Remove ``atom_id``; ids are already validated."""

    @abstractmethod
    def _append(self, dst: AtomId, src: AtomId) -> None:
        """Insert a copy of ``src`` right after ``dst``; ids are already validated."""

    @abstractmethod
    def _swap(self, first: AtomId, second: AtomId) -> None:
        """Exchange the content of two distinct, validated atoms."""

    def instrumented_source(self) -> str:
        """Render the program so each executed atom appends its id to the coverage file."""

        raise Unimplemented("instrumented_source", self.key)

    def atoms_at_line(self, line: int) -> list[AtomId]:
        """Atoms whose original source text covers ``line``."""

        raise Unimplemented("atoms_at_line", self.key)

    def debug_info(self) -> None:
        raise Unimplemented("debug_info", self.key)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def delete(self, atom_id: AtomId) -> None:
        check_atom(atom_id, self.max_atom())
        self._delete(atom_id)
        if self.renumbering is RenumberPolicy.COMPACT:
            self._localization.remove_atom(atom_id)
        self._history.append(delete_edit(atom_id))

    def append(self, dst: AtomId, src: AtomId) -> None:
        max_atom = self.max_atom()
        check_atom(dst, max_atom)
        check_atom(src, max_atom)
        src_weight = self._localization.weight(src, self.config.untouched_weight)
        self._append(dst, src)
        if self.renumbering is RenumberPolicy.COMPACT:
            self._localization.insert_atom_after(dst, src_weight)
        self._history.append(append_edit(dst, src))

    def swap(self, first: AtomId, second: AtomId) -> None:
        max_atom = self.max_atom()
        check_atom(first, max_atom)
        check_atom(second, max_atom)
        if first == second:
            return
        self._swap(first, second)
        self._history.append(swap_edit(first, second))

    @property
    def history(self) -> tuple[Edit, ...]:
        return tuple(self._history)

    def name(self) -> str:
        """Edit history of this variant, ``original`` when unmutated."""

        return format_edits(self._history) if self._history else "original"

    # ------------------------------------------------------------------
    # Copies and snapshots
    # ------------------------------------------------------------------

    def copy(self) -> "Representation":
        """Independent deep copy; shared collaborators are passed by reference."""

        memo: dict[int, Any] = {}
        for attr in self._SHARED_ATTRS:
            shared = getattr(self, attr, None)
            if shared is not None:
                memo[id(shared)] = shared
        return copy.deepcopy(self, memo)

    def save_binary(self, path: str | Path) -> None:
        skipped = set(self._SHARED_ATTRS) | set(self._TRANSIENT_ATTRS)
        state = {name: value for name, value in vars(self).items() if name not in skipped}
        payload = {
            "format": SNAPSHOT_FORMAT,
            "version": SNAPSHOT_VERSION,
            "backend": self.key,
            "state": state,
        }
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        with open(target, "wb") as file_obj:
            pickle.dump(payload, file_obj, protocol=pickle.HIGHEST_PROTOCOL)

    def load_binary(self, path: str | Path) -> None:
        payload = _read_snapshot(path)
        if payload.get("backend") != self.key:
            raise ValueError(f"{path} holds a '{payload.get('backend')}' representation, not '{self.key}'")
        vars(self).update(payload["state"])
        self._compiled = None

    def load_source(self, path: str | Path) -> None:
        source_path = Path(path)
        self.from_source(source_path.read_text(encoding="utf-8"))
        if source_path.suffix:
            # rendered variants keep the program's extension for the compiler
            self.source_suffix = source_path.suffix

    def _reset_program_state(self) -> None:
        """Forget localization, history, and binaries after a fresh parse."""

        self._localization = FaultLocalization()
        self._history = []
        self._compiled = None

    # ------------------------------------------------------------------
    # Fault localization
    # ------------------------------------------------------------------

    def compute_fault_localization(self) -> None:
        scheme = self.config.fault_scheme
        if scheme == "uniform":
            weights = {atom_id: 1.0 for atom_id in atom_range(self.max_atom())}
        elif scheme == "line":
            weights = self._line_weights()
        elif scheme == "path":
            weights = self._path_weights()
        else:
            raise ValueError(f"Unknown fault scheme: {scheme}")
        self._localization = FaultLocalization(weights)
        print(f"[Localization] scheme={scheme} weighted_atoms={len(self.get_localization())}/{self.max_atom()}")

    def get_localization(self) -> list[LocalizationEntry]:
        return self._localization.entries()

    def get_full_localization(self) -> list[LocalizationEntry]:
        return self._localization.full(self.max_atom(), self.config.untouched_weight)

    def _line_weights(self) -> dict[AtomId, float]:
        if not self.config.fault_file:
            raise FaultLocalizationFailure("fault_scheme 'line' needs fault_file")
        weights: dict[AtomId, float] = {}
        for line, weight in read_fault_file(self.config.fault_file):
            for atom_id in self.atoms_at_line(line):
                weights[atom_id] = max(weight, weights.get(atom_id, 0.0))
        return weights

    def _path_weights(self) -> dict[AtomId, float]:
        work_dir = Path(self.config.work_dir).resolve() / "coverage"
        work_dir.mkdir(parents=True, exist_ok=True)
        source = work_dir / f"coverage{self.source_suffix}"
        source.write_text(self.instrumented_source(), encoding="utf-8")
        result = self.compiler.compile(source, work_dir / "coverage")
        if not result.success or result.executable is None:
            raise FaultLocalizationFailure(f"instrumented program failed to compile: {result.stderr}")

        coverage_file = work_dir / "coverage.path"
        positive_path: set[AtomId] = set()
        negative_path: set[AtomId] = set()
        tests = all_tests(self.config.pos_tests, self.config.neg_tests)
        for test in tqdm(tests, desc="coverage", disable=not self.config.progress):
            coverage_file.unlink(missing_ok=True)
            self.harness.run(
                result.executable,
                test,
                source=source,
                env={COVERAGE_ENV_VAR: str(coverage_file)},
            )
            visited = _read_coverage(coverage_file)
            (positive_path if test.positive else negative_path).update(visited)

        return path_weights(
            negative_path,
            positive_path,
            negative_weight=self.config.negative_path_weight,
            positive_weight=self.config.positive_path_weight,
        )

    # ------------------------------------------------------------------
    # Compile and test
    # ------------------------------------------------------------------

    def compile(self, source_path: str | Path, exe_path: str | Path, keep_source: bool = False) -> bool:
        """Render, compile, and remember the result as the binary ``test_case`` runs."""

        text = self.output_source()
        source = Path(source_path).resolve()
        source.parent.mkdir(parents=True, exist_ok=True)
        source.write_text(text, encoding="utf-8")

        result = self.compiler.compile(source, Path(exe_path).resolve())
        self.stats.record_compile(result.success)
        executable = Path(result.executable) if result.executable is not None else None
        self._compiled = CompiledVariant(
            digest=content_digest(text),
            success=bool(result.success),
            source=source,
            executable=executable,
        )
        if not result.success:
            print(f"[Compile] {self.name()} failed: {result.stderr[:300]}", file=sys.stderr)
        if not keep_source and executable is not None and executable != source:
            source.unlink(missing_ok=True)
        return bool(result.success)

    def evaluate_test(self, test: Test) -> TestOutcome:
        """Outcome of ``test`` on the most recently compiled binary, cache first."""

        compiled = self._compiled
        if compiled is None:
            raise RuntimeError(f"{self.name()}: test_case called before compile")
        if not compiled.success or compiled.executable is None:
            return TestOutcome.FAILED

        if self.cache is not None:
            cached = self.cache.query(compiled.digest, test)
            if cached is not None:
                self.stats.record_cache_hit()
                return TestOutcome.PASSED if cached else TestOutcome.FAILED

        outcome = self.harness.run(compiled.executable, test, source=compiled.source)
        self.stats.record_test(timed_out=outcome is TestOutcome.TIMEOUT)
        if self.cache is not None:
            self.cache.record_evaluation(compiled.digest, test)
            if outcome is not TestOutcome.TIMEOUT:
                self.cache.add(compiled.digest, test, outcome is TestOutcome.PASSED)
        return outcome

    def test_case(self, test: Test) -> bool:
        return self.evaluate_test(test) is TestOutcome.PASSED

    @property
    def compiled_digest(self) -> Optional[str]:
        return self._compiled.digest if self._compiled is not None else None

    def sanity_check(self) -> None:
        """Fail fatally unless the program compiles, passes positives, and fails negatives."""

        work_dir = Path(self.config.work_dir)
        source = work_dir / f"sanity{self.source_suffix}"
        if not self.compile(source, work_dir / "sanity", keep_source=True):
            raise SanityCheckFailure("original program does not compile")

        failures: list[str] = []
        tests = all_tests(self.config.pos_tests, self.config.neg_tests)
        for test in tqdm(tests, desc="sanity", disable=not self.config.progress):
            outcome = self.evaluate_test(test)
            # a timeout counts as a failing run
            if (outcome is TestOutcome.PASSED) != test.positive:
                failures.append(f"{test.name}:{outcome.value}")
        if failures:
            raise SanityCheckFailure("original program does not match the test oracle", failures)
        print(f"[Sanity] ok: {self.config.pos_tests} positive, {self.config.neg_tests} negative")


def _read_coverage(path: Path) -> set[AtomId]:
    if not path.is_file():
        return set()
    visited: set[AtomId] = set()
    for line in path.read_text(encoding="utf-8").split():
        try:
            visited.add(int(line))
        except ValueError:
            continue
    return visited


def _read_snapshot(path: str | Path) -> dict[str, Any]:
    with open(path, "rb") as file_obj:
        payload = pickle.load(file_obj)
    if not isinstance(payload, dict) or payload.get("format") != SNAPSHOT_FORMAT:
        raise ValueError(f"{path} is not a representation snapshot")
    if payload.get("version") != SNAPSHOT_VERSION:
        raise ValueError(f"{path}: unsupported snapshot version {payload.get('version')!r}")
    return payload


def snapshot_backend(path: str | Path) -> str:
    """Backend key recorded in a ``save_binary`` snapshot."""

    return str(_read_snapshot(path).get("backend", ""))
