"""External compiler and test-harness processes.

Both collaborators are built from command templates in ``RepairConfig``.
Placeholders are substituted before the command is split with ``shlex``,
so ``compiler_options`` may carry several flags.
"""

from __future__ import annotations

import os
import shlex
import subprocess
import sys
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Mapping, Optional

from repair.config import RepairConfig
from repair.model import Test

COVERAGE_ENV_VAR = "REPAIR_COVERAGE_FILE"

PORT_WRAP = 800
PORT_CEILING = 1600


class TestOutcome(str, Enum):
    """Result of running one test against one executable."""

    __test__ = False

    PASSED = "passed"
    FAILED = "failed"
    TIMEOUT = "timeout"


@dataclass
class CompileResult:
    success: bool
    executable: Optional[Path] = None
    stderr: str = ""


def substitute(template: str, replacements: Mapping[str, str]) -> list[str]:
    """Fill ``__NAME__`` placeholders and split the result into argv."""

    command = template
    for placeholder, value in replacements.items():
        command = command.replace(placeholder, value)
    return shlex.split(command)


def _tail(text: str, limit: int = 2000) -> str:
    text = (text or "").strip()
    return text if len(text) <= limit else "..." + text[-limit:]


class Compiler:
    """Run ``config.compile_command`` on a rendered source file."""

    def __init__(self, config: RepairConfig) -> None:
        self.config = config

    def produces_executable(self) -> bool:
        return "__EXE_NAME__" in self.config.compile_command

    def compile(self, source_path: str | Path, exe_path: str | Path) -> CompileResult:
        source = Path(source_path)
        exe = Path(exe_path) if self.produces_executable() else source
        argv = substitute(
            self.config.compile_command,
            {
                "__COMPILER_NAME__": self.config.compiler_name,
                "__COMPILER_OPTIONS__": self.config.compiler_options,
                "__SOURCE_NAME__": shlex.quote(str(source)),
                "__EXE_NAME__": shlex.quote(str(exe)),
            },
        )
        try:
            result = subprocess.run(
                argv,
                capture_output=True,
                text=True,
                timeout=self.config.compile_timeout_seconds,
            )
        except subprocess.TimeoutExpired:
            return CompileResult(False, None, f"compiler timed out after {self.config.compile_timeout_seconds}s")
        except (FileNotFoundError, PermissionError) as exc:
            return CompileResult(False, None, f"cannot run compiler: {exc}")

        if result.returncode != 0:
            return CompileResult(False, None, _tail(result.stderr or result.stdout))
        return CompileResult(True, exe, _tail(result.stderr))


class TestHarness:
    """Run ``config.test_command`` for one (executable, test) pair."""

    __test__ = False

    def __init__(self, config: RepairConfig) -> None:
        self.config = config
        self.port = int(config.port)

    def change_port(self) -> None:
        self.port += 1
        if self.port > PORT_CEILING:
            self.port -= PORT_WRAP

    def run(
        self,
        executable: str | Path,
        test: Test,
        source: str | Path | None = None,
        env: Optional[Mapping[str, str]] = None,
    ) -> TestOutcome:
        argv = substitute(
            self.config.test_command,
            {
                "__EXE_NAME__": shlex.quote(str(executable)),
                "__TEST_NAME__": test.name,
                "__SOURCE_NAME__": shlex.quote(str(source if source is not None else executable)),
                "__PORT__": str(self.port),
            },
        )
        self.change_port()
        run_env = dict(os.environ)
        if env:
            run_env.update(env)
        try:
            result = subprocess.run(
                argv,
                capture_output=True,
                text=True,
                timeout=self.config.test_timeout_seconds,
                env=run_env,
            )
        except subprocess.TimeoutExpired:
            return TestOutcome.TIMEOUT
        except (FileNotFoundError, PermissionError) as exc:
            print(f"[Test] cannot run test command for {test.name}: {exc}", file=sys.stderr)
            return TestOutcome.FAILED
        return TestOutcome.PASSED if result.returncode == 0 else TestOutcome.FAILED
