"""Pattern scan for hardcoded secrets and risky calls."""

import logging
import re
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

SOURCE_SUFFIXES = {".py", ".js", ".jsx", ".ts", ".tsx"}
SKIP_DIRS = {".git", ".venv", "venv", "node_modules", "dist", "build", "__pycache__", ".tox"}


@dataclass(frozen=True)
class Pattern:
    name: str
    regex: re.Pattern
    severity: str
    kind: str
    message: str


SECRET_PATTERNS = [
    Pattern("AWS Access Key", re.compile(r"AKIA[0-9A-Z]{16}"), "high", "Hardcoded Secret", "Possible AWS Access Key detected"),
    Pattern("API Key", re.compile(r"api[_-]?key[_-]?[=:]\s*['\"]?[a-zA-Z0-9]{32,}['\"]?", re.I), "high", "Hardcoded Secret", "Possible API Key detected"),
    Pattern("Private Key", re.compile(r"-----BEGIN (RSA |DSA )?PRIVATE KEY-----"), "high", "Hardcoded Secret", "Possible Private Key detected"),
    Pattern("Password", re.compile(r"password[_-]?[=:]\s*['\"][^'\"]{8,}['\"]", re.I), "medium", "Hardcoded Secret", "Possible Password detected"),
    Pattern("Token", re.compile(r"token[_-]?[=:]\s*['\"]?[a-zA-Z0-9]{32,}['\"]?", re.I), "medium", "Hardcoded Secret", "Possible Token detected"),
    Pattern("Secret", re.compile(r"secret[_-]?[=:]\s*['\"]?[a-zA-Z0-9]{16,}['\"]?", re.I), "medium", "Hardcoded Secret", "Possible Secret detected"),
]

RISK_PATTERNS = [
    Pattern("eval", re.compile(r"\beval\s*\("), "high", "Code Injection Risk", "Call to eval detected - potential code injection risk"),
    Pattern("innerHTML", re.compile(r"\.innerHTML\s*="), "medium", "XSS Risk", "Use of innerHTML - potential XSS risk"),
    Pattern("dangerouslySetInnerHTML", re.compile(r"dangerouslySetInnerHTML"), "medium", "XSS Risk", "Use of dangerouslySetInnerHTML - ensure content is sanitized"),
]

SUGGESTIONS = [
    "Use environment variables for sensitive data and never commit .env files",
    "Consider a dedicated secrets scanner in CI",
    "Sanitize user input to prevent XSS and injection attacks",
    "Review the OWASP Top 10: https://owasp.org/www-project-top-ten/",
]


@dataclass
class SecurityIssue:
    type: str
    severity: str
    message: str
    file: str | None = None
    line: int | None = None

    @property
    def location(self) -> str:
        if self.file and self.line:
            return f"{self.file}:{self.line}"
        return self.file or ""


def iter_source_files(paths: list[str | Path]):
    for root in paths:
        root = Path(root)
        if root.is_file():
            yield root
            continue
        for path in sorted(root.rglob("*")):
            if any(part in SKIP_DIRS for part in path.parts):
                continue
            if path.is_file() and path.suffix in SOURCE_SUFFIXES:
                yield path


def scan_text(text: str, file: str | None = None) -> list[SecurityIssue]:
    issues = []
    for number, line in enumerate(text.splitlines(), 1):
        for pattern in SECRET_PATTERNS + RISK_PATTERNS:
            if pattern.regex.search(line):
                issues.append(
                    SecurityIssue(
                        type=pattern.kind,
                        severity=pattern.severity,
                        message=pattern.message,
                        file=file,
                        line=number,
                    )
                )
    return issues


def scan_paths(paths: list[str | Path]) -> list[SecurityIssue]:
    issues = []
    for path in iter_source_files(paths):
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError):
            logger.debug("Skipping unreadable file %s", path)
            continue
        issues.extend(scan_text(text, str(path)))
    return issues


def has_high_severity(issues: list[SecurityIssue]) -> bool:
    return any(issue.severity == "high" for issue in issues)
