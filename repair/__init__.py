"""Program-representation core for test-driven program repair."""

from repair.archive import VariantArchive
from repair.cache import EvaluationCache, content_digest
from repair.config import RepairConfig, config_from_env, load_config_file
from repair.errors import (
    CacheIOFailure,
    FaultLocalizationFailure,
    InvalidAtom,
    RepairError,
    SanityCheckFailure,
    Unimplemented,
)
from repair.evaluator import VariantEvaluation, evaluate_variant
from repair.external import Compiler, CompileResult, TestHarness, TestOutcome
from repair.localization import FaultLocalization, LocalizationEntry, choose_one_weighted
from repair.model import AtomId, Negative, Positive, RenumberPolicy, Test, all_tests, parse_test, test_name
from repair.mutation import Edit, apply_edits, format_edits, parse_edits, random_edit
from repair.representation import Representation
from repair.stats import RunStats

__all__ = [
    "VariantArchive",
    "EvaluationCache",
    "content_digest",
    "RepairConfig",
    "config_from_env",
    "load_config_file",
    "CacheIOFailure",
    "FaultLocalizationFailure",
    "InvalidAtom",
    "RepairError",
    "SanityCheckFailure",
    "Unimplemented",
    "VariantEvaluation",
    "evaluate_variant",
    "Compiler",
    "CompileResult",
    "TestHarness",
    "TestOutcome",
    "FaultLocalization",
    "LocalizationEntry",
    "choose_one_weighted",
    "AtomId",
    "Negative",
    "Positive",
    "RenumberPolicy",
    "Test",
    "all_tests",
    "parse_test",
    "test_name",
    "Edit",
    "apply_edits",
    "format_edits",
    "parse_edits",
    "random_edit",
    "Representation",
    "RunStats",
]
