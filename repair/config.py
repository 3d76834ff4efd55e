"""Run configuration: dataclass defaults, env vars, JSON/YAML files."""

from __future__ import annotations

import dataclasses
import json
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional

import yaml

from repair.localization import FAULT_SCHEMES

DEFAULT_COMPILE_COMMAND = "__COMPILER_NAME__ -o __EXE_NAME__ __SOURCE_NAME__ __COMPILER_OPTIONS__"
DEFAULT_TEST_COMMAND = "./test.sh __EXE_NAME__ __TEST_NAME__ __PORT__ __SOURCE_NAME__"


@dataclass(frozen=True)
class RepairConfig:
    """Read-only settings shared by the driver, representations, and collaborators."""

    program: str = ""
    representation: str = ""
    compiler_name: str = "gcc"
    compiler_options: str = ""
    compile_command: str = DEFAULT_COMPILE_COMMAND
    test_command: str = DEFAULT_TEST_COMMAND
    compile_timeout_seconds: float = 120.0
    test_timeout_seconds: float = 60.0
    port: int = 808
    seed: int = 0
    pos_tests: int = 5
    neg_tests: int = 1
    negative_test_weight: float = 2.0
    fault_scheme: str = "path"
    fault_file: str = ""
    positive_path_weight: float = 0.1
    negative_path_weight: float = 1.0
    untouched_weight: float = 0.0
    delete_probability: float = 1.0
    append_probability: float = 1.0
    swap_probability: float = 1.0
    cache_path: str = "repair.cache"
    use_cache: bool = True
    work_dir: str = "repair_work"
    keep_source: bool = False
    progress: bool = True

    def __post_init__(self) -> None:
        if self.pos_tests < 0 or self.neg_tests < 0:
            raise ValueError("pos_tests and neg_tests must be >= 0")
        if self.fault_scheme not in FAULT_SCHEMES:
            raise ValueError(f"fault_scheme must be one of {', '.join(FAULT_SCHEMES)}; got {self.fault_scheme!r}")
        for name in ("positive_path_weight", "negative_path_weight", "untouched_weight"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be within [0, 1]; got {value!r}")
        if self.compile_timeout_seconds <= 0 or self.test_timeout_seconds <= 0:
            raise ValueError("timeouts must be positive")

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any], base: Optional["RepairConfig"] = None) -> "RepairConfig":
        """Overlay ``values`` on ``base`` (or the defaults), coercing each field's type."""

        base = base or cls()
        known = {field.name: field for field in fields(cls)}
        updates: dict[str, Any] = {}
        for key, raw in values.items():
            name = str(key).replace("-", "_")
            if name not in known:
                print(f"[Warn] ignoring unknown config key: {key}")
                continue
            if raw is None:
                continue
            updates[name] = _coerce(raw, type(getattr(base, name)), name)
        return dataclasses.replace(base, **updates)

    def to_dict(self) -> dict[str, Any]:
        return dataclasses.asdict(self)


def _coerce(raw: Any, target: type, name: str) -> Any:
    try:
        if target is bool:
            if isinstance(raw, str):
                lowered = raw.strip().lower()
                if lowered in {"1", "true", "yes", "on"}:
                    return True
                if lowered in {"0", "false", "no", "off", ""}:
                    return False
                raise ValueError(raw)
            return bool(raw)
        if target is int:
            return int(float(raw))
        if target is float:
            return float(raw)
        return str(raw)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid value for {name}: {raw!r}") from exc


def load_config_file(path: str | None, allow_missing: bool = False) -> dict[str, Any]:
    """Load a JSON/YAML config file; a top-level ``repair`` section is unwrapped."""

    if not path:
        return {}

    config_path = Path(path)
    if not config_path.exists():
        if allow_missing:
            return {}
        raise FileNotFoundError(f"Config file not found: {path}")

    text = config_path.read_text(encoding="utf-8")
    if config_path.suffix.lower() == ".json":
        payload = json.loads(text)
    else:
        payload = yaml.safe_load(text)
    if not isinstance(payload, dict):
        return {}
    section = payload.get("repair")
    return dict(section) if isinstance(section, dict) else payload


def _env_assignment(raw_line: str) -> Optional[tuple[str, str]]:
    """``(name, value)`` for one dotenv line, ``None`` for blanks and comments."""

    line = raw_line.strip()
    if line.startswith("export "):
        line = line[len("export "):]
    if not line or line.startswith("#") or "=" not in line:
        return None
    name, value = (part.strip() for part in line.split("=", 1))
    if value[:1] in {"'", '"'} and value.endswith(value[0]) and len(value) > 1:
        value = value[1:-1]
    return (name, value) if name else None


def load_env_file(path: str | None, override: bool = False) -> bool:
    """Export a dotenv file's assignments; existing variables win unless ``override``."""

    if not path or not Path(path).is_file():
        return False
    assignments = [
        parsed
        for parsed in map(_env_assignment, Path(path).read_text(encoding="utf-8").splitlines())
        if parsed is not None
    ]
    for name, value in assignments:
        if override or name not in os.environ:
            os.environ[name] = value
    return bool(assignments)


def env_value(names: Iterable[str]) -> Optional[str]:
    """Value of the first of ``names`` set to something non-empty."""

    return next((os.environ[name] for name in names if os.environ.get(name)), None)


ENV_KEYS: dict[str, tuple[str, ...]] = {
    "compiler_name": ("REPAIR_COMPILER", "CC"),
    "compiler_options": ("REPAIR_COMPILER_OPTIONS", "REPAIR_COMPILER_OPTS"),
    "compile_command": ("REPAIR_COMPILE_COMMAND",),
    "test_command": ("REPAIR_TEST_COMMAND",),
    "seed": ("REPAIR_SEED",),
    "pos_tests": ("REPAIR_POS_TESTS",),
    "neg_tests": ("REPAIR_NEG_TESTS",),
    "test_timeout_seconds": ("REPAIR_TEST_TIMEOUT_SECONDS",),
    "cache_path": ("REPAIR_CACHE_PATH",),
}


def config_from_env(base: Optional[RepairConfig] = None) -> RepairConfig:
    """Overlay ``REPAIR_*`` environment variables on ``base``."""

    values = {name: env_value(keys) for name, keys in ENV_KEYS.items()}
    return RepairConfig.from_mapping({k: v for k, v in values.items() if v is not None}, base=base)
