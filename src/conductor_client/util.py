import re
from dataclasses import dataclass
from functools import lru_cache
from typing import List

_DEFAULT_PATTERNS = (
    (r"(?i)\bBearer\s+[A-Za-z0-9\-._~+/]+=*", "Bearer REDACTED"),
    (r"(?i)\b(X-Local-Token)['\"]?\s*[:=]\s*['\"]?([^\s,;'\"}]+)", r"\1: REDACTED"),
    (r"sk-[A-Za-z0-9_-]{10,}", "sk-REDACTED"),
    (
        r"(?i)\b([A-Z0-9_]*(?:api[_-]?key|token|secret|password))\b\s*[:=]\s*([^\s,;&]+)",
        r"\1=REDACTED",
    ),
)


@dataclass(frozen=True)
class RedactionResult:
    text: str
    redacted: bool
    replacements: int


def redact(text: str) -> str:
    return redact_with_audit(text).text


def redact_with_audit(text: str) -> RedactionResult:
    value = text or ""
    total = 0
    for regex, replacement in _compiled_patterns():
        value, count = regex.subn(replacement, value)
        total += count
    return RedactionResult(text=value, redacted=total > 0, replacements=total)


@lru_cache(maxsize=1)
def _compiled_patterns() -> List[tuple[re.Pattern[str], str]]:
    return [(re.compile(pattern), replacement) for pattern, replacement in _DEFAULT_PATTERNS]
