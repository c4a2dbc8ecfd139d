"""
Prompt-injection / jailbreak detection for AI chat input.

Detection is a plain predicate (``str -> bool``) handed to the credit ledger,
so the pattern set can be swapped without touching ledger logic.
"""
import re
from typing import Callable, Iterable, Pattern, Union

AbuseDetector = Callable[[str], bool]

DEFAULT_ABUSE_PATTERNS = (
    r"ignore.*instructions",
    r"pretend.*you.*are",
    r"act.*as.*if",
    r"forget.*previous",
    r"disregard.*rules",
    r"you.*are.*now",
    r"bypass.*safety",
    r"jailbreak",
    r"dan.*mode",
    r"developer.*mode",
)


class AbusePatternDetector:
    """Case-insensitive regex search against a fixed list of adversarial phrasings."""

    def __init__(self, patterns: Iterable[Union[str, Pattern]] = DEFAULT_ABUSE_PATTERNS):
        self.patterns = [
            p if isinstance(p, re.Pattern) else re.compile(p, re.IGNORECASE)
            for p in patterns
        ]

    def __call__(self, text: str) -> bool:
        return any(pattern.search(text) for pattern in self.patterns)


def get_abuse_detector() -> AbuseDetector:
    """Dependency provider for the active detector."""
    return AbusePatternDetector()
