"""Compile-and-test evaluation of one variant, with an optional JSONL trace."""

from __future__ import annotations

import json
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Optional

from tqdm import tqdm

from repair.config import RepairConfig
from repair.external import TestOutcome
from repair.model import all_tests
from repair.representation import Representation


@dataclass
class VariantEvaluation:
    """Per-test outcomes and fitness of one compiled variant."""

    name: str
    digest: Optional[str]
    compiled: bool
    outcomes: dict[str, str] = field(default_factory=dict)
    fitness: float = 0.0
    max_fitness: float = 0.0

    @property
    def passed_all(self) -> bool:
        return self.compiled and bool(self.outcomes) and all(
            outcome == TestOutcome.PASSED.value for outcome in self.outcomes.values()
        )

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["passed_all"] = self.passed_all
        return payload


def fitness_of(outcomes: dict[str, str], negative_test_weight: float) -> float:
    """Positives passed plus ``negative_test_weight`` per negative passed."""

    score = 0.0
    for name, outcome in outcomes.items():
        if outcome != TestOutcome.PASSED.value:
            continue
        score += 1.0 if name.startswith("p") else negative_test_weight
    return score


def evaluate_variant(
    rep: Representation,
    config: Optional[RepairConfig] = None,
    output_path: Optional[str] = None,
) -> VariantEvaluation:
    """Compile ``rep`` into the work dir and run every oracle test against it."""

    config = config or rep.config
    work_dir = Path(config.work_dir)
    compiled = rep.compile(
        work_dir / f"variant{rep.source_suffix}",
        work_dir / "variant",
        keep_source=config.keep_source,
    )

    tests = all_tests(config.pos_tests, config.neg_tests)
    outcomes: dict[str, str] = {}
    for test in tqdm(tests, desc=f"variant:{rep.name()}"[:40], disable=not config.progress):
        outcomes[test.name] = rep.evaluate_test(test).value

    evaluation = VariantEvaluation(
        name=rep.name(),
        digest=rep.compiled_digest,
        compiled=compiled,
        outcomes=outcomes,
        fitness=fitness_of(outcomes, config.negative_test_weight),
        max_fitness=config.pos_tests + config.negative_test_weight * config.neg_tests,
    )

    if output_path:
        os.makedirs(os.path.dirname(output_path) or ".", exist_ok=True)
        with open(output_path, "a", encoding="utf-8") as file_obj:
            file_obj.write(json.dumps(evaluation.to_dict(), ensure_ascii=False) + "\n")

    return evaluation
