"""
Static analysis of changed files with flake8 and eslint.

Each file is written to a throwaway directory and the tools are run as
subprocesses with argument lists (no shell). A missing tool, a crash or
unparseable output only costs that file its static findings.
"""

import asyncio
import json
import logging
import re
import subprocess
import tempfile
from pathlib import Path
from typing import List, Optional, Tuple

from reviewer.models.review_schemas import Finding

logger = logging.getLogger(__name__)

ESLINT_EXTENSIONS = {".js", ".jsx", ".ts", ".tsx"}
FLAKE8_EXTENSIONS = {".py"}

_FLAKE8_FORMAT = "%(row)d:%(col)d:%(code)s:%(text)s"
_FLAKE8_LINE = re.compile(r"^(\d+):(\d+):([A-Z]+\d+):(.*)$")
_UNSAFE_CONFIG_CHARS = re.compile(r"[;&|`$(){}\[\]<>\"']")


def eslint_suggestion(rule: str, message: str) -> str:
    if "no-unused" in rule:
        return "Remove unused variable or import."
    if "prefer-const" in rule:
        return "Use `const` instead of `let` if the variable is never reassigned."
    if "no-var" in rule:
        return "Use `let` or `const` instead of `var`."
    if "eqeqeq" in rule:
        return "Use strict equality (`===`) instead of loose equality (`==`)."
    if "semi" in rule:
        if "Missing semicolon" in message:
            return "Add a semicolon at the end of the statement."
        return "Remove the semicolon."
    if "quotes" in rule:
        return "Use consistent quote style (single or double quotes)."
    if "indent" in rule:
        return "Fix indentation to match the project's style guide."
    if "is defined but never used" in message:
        return "Remove the unused variable or use it in your code."
    if "Unexpected" in message:
        return f"Fix the syntax error: {message}"
    return f"Review the ESLint rule `{rule}` and fix the issue: {message}"


def flake8_suggestion(code: str, text: str) -> str:
    if code == "E501":
        return "Line too long. Break it into multiple lines or use shorter variable names."
    if code in ("E302", "E305"):
        return "Add blank lines to separate code sections as per PEP 8."
    if code == "E303":
        return "Remove extra blank lines."
    if code == "E401":
        return "Import statements should be on separate lines."
    if code == "E402":
        return "Move imports to the top of the file."
    if code.startswith("F"):
        return "Pyflakes detected an issue. Review the code logic."
    if code.startswith("W"):
        return "Code style warning. Follow PEP 8 guidelines."
    return f"Fix the Flake8 issue: {text}"


def parse_eslint_output(stdout: str, file_path: str) -> List[Finding]:
    report = json.loads(stdout)
    if not isinstance(report, list):
        raise ValueError(f"ESLint report is not a list: {type(report).__name__}")
    findings: List[Finding] = []
    for entry in report:
        if not isinstance(entry, dict):
            continue
        for message in entry.get("messages", []):
            fixable = message.get("fix") is not None
            rule = message.get("ruleId") or ""
            text = message.get("message", "")
            severity = {2: "error", 1: "warning"}.get(message.get("severity"), "info")
            findings.append(
                Finding(
                    file=file_path,
                    line=message.get("line"),
                    column=message.get("column"),
                    severity=severity,
                    message=text,
                    rule=rule or None,
                    tool="eslint",
                    fixable=fixable,
                    fix=f"Run: npx eslint --fix {file_path}" if fixable else None,
                    suggestion=eslint_suggestion(rule, text),
                )
            )
    return findings


def parse_flake8_output(stdout: str, file_path: str) -> List[Finding]:
    findings: List[Finding] = []
    for raw in stdout.splitlines():
        match = _FLAKE8_LINE.match(raw.strip())
        if not match:
            continue
        row, col, code, text = match.groups()
        text = text.strip()
        findings.append(
            Finding(
                file=file_path,
                line=int(row),
                column=int(col),
                severity="error" if code.startswith("E") else "warning",
                message=text,
                rule=code,
                tool="flake8",
                fixable=False,
                suggestion=flake8_suggestion(code, text),
            )
        )
    return findings


class StaticAnalyzer:
    """Runs the configured linters over one file's content."""

    def __init__(
        self,
        eslint_enabled: bool = True,
        flake8_enabled: bool = True,
        eslint_config: Optional[str] = None,
        flake8_config: Optional[str] = None,
        timeout: float = 120.0,
    ):
        self.eslint_enabled = eslint_enabled
        self.flake8_enabled = flake8_enabled
        self.eslint_config = self._validate_config_path(eslint_config)
        self.flake8_config = self._validate_config_path(flake8_config)
        self.timeout = timeout

    @staticmethod
    def _validate_config_path(config_path: Optional[str]) -> Optional[str]:
        if config_path and _UNSAFE_CONFIG_CHARS.search(config_path):
            raise ValueError(f"Invalid config path: {config_path} contains unsafe characters")
        return config_path

    @staticmethod
    def _safe_relative_path(file_path: str, working_dir: Path) -> Path:
        resolved = (working_dir / file_path).resolve()
        if not resolved.is_relative_to(working_dir.resolve()):
            raise ValueError(f"Invalid file path: {file_path} is outside working directory")
        return resolved.relative_to(working_dir.resolve())

    def _run(self, args: List[str], cwd: Path) -> Tuple[int, str, str]:
        result = subprocess.run(
            args,
            cwd=cwd,
            capture_output=True,
            text=True,
            timeout=self.timeout,
        )
        return result.returncode, result.stdout, result.stderr

    def _run_eslint(self, relative: Path, working_dir: Path, file_path: str) -> List[Finding]:
        args = ["npx", "eslint", str(relative), "--format", "json"]
        if self.eslint_config:
            args.extend(["--config", self.eslint_config])
        exit_code, stdout, stderr = self._run(args, working_dir)
        # eslint exits non-zero when it finds problems but still prints JSON
        if not stdout:
            if exit_code != 0:
                logger.warning("ESLint produced no output for %s: %s", file_path, stderr.strip())
            return []
        return parse_eslint_output(stdout, file_path)

    def _run_flake8(self, relative: Path, working_dir: Path, file_path: str) -> List[Finding]:
        args = ["flake8", str(relative), f"--format={_FLAKE8_FORMAT}"]
        if self.flake8_config:
            args.extend(["--config", self.flake8_config])
        _, stdout, _ = self._run(args, working_dir)
        return parse_flake8_output(stdout, file_path)

    def _analyze_sync(self, file_path: str, content: str) -> List[Finding]:
        suffix = Path(file_path).suffix.lower()
        tools = []
        if self.eslint_enabled and suffix in ESLINT_EXTENSIONS:
            tools.append(("ESLint", self._run_eslint))
        if self.flake8_enabled and suffix in FLAKE8_EXTENSIONS:
            tools.append(("Flake8", self._run_flake8))
        if not tools:
            return []

        findings: List[Finding] = []
        with tempfile.TemporaryDirectory(prefix="static-analysis-") as tmp:
            working_dir = Path(tmp)
            try:
                relative = self._safe_relative_path(file_path, working_dir)
            except ValueError as e:
                logger.warning("Skipping static analysis: %s", e)
                return []
            target = working_dir / relative
            try:
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_text(content, encoding="utf-8")
            except OSError as e:
                logger.warning("Skipping static analysis of %s: %s", file_path, e)
                return []

            for name, run in tools:
                try:
                    findings.extend(run(relative, working_dir, file_path))
                except (OSError, subprocess.SubprocessError, ValueError) as e:
                    logger.warning("%s execution failed for %s: %s", name, file_path, e)

        return findings

    async def analyze(self, file_path: str, content: str) -> List[Finding]:
        """Return findings for the file; tool failures yield no findings."""
        return await asyncio.to_thread(self._analyze_sync, file_path, content)
