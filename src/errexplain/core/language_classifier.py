"""Advisory source-language detection for pasted error text.

The classifier scores the text against per-language indicator patterns
(file suffixes with line numbers, canonical exception names, compiler
diagnostic codes). It only ever produces a hint: the caller's declared
language is never overridden, and no analysis is blocked on the result.
"""

from __future__ import annotations

import functools
import re

import structlog

log = structlog.get_logger()

SUPPORTED_LANGUAGES: tuple[str, ...] = (
    "JavaScript",
    "TypeScript",
    "React",
    "Next.js",
    "Node.js",
    "Python",
    "Java",
    "C++",
    "C#",
    "PHP",
    "Ruby",
    "Go",
    "Rust",
    "Swift",
    "Kotlin",
    "SQL",
    "HTML/CSS",
    "Docker",
    "Git",
    "Linux",
    "Appwrite",
    "Other",
)

# Declared labels that never trigger a mismatch warning
NEUTRAL_LANGUAGES = frozenset({"Other"})

# Each key lists the labels it never warns against; checked in both directions
COMPATIBLE_LANGUAGES: dict[str, frozenset[str]] = {
    "JavaScript": frozenset({"TypeScript", "React", "Next.js"}),
    "TypeScript": frozenset({"JavaScript", "React", "Next.js"}),
    "React": frozenset({"JavaScript", "TypeScript", "Next.js"}),
    "Next.js": frozenset({"JavaScript", "TypeScript", "React"}),
    "Node.js": frozenset({"JavaScript", "TypeScript"}),
    "HTML/CSS": frozenset({"JavaScript", "React", "Next.js"}),
}

_I = re.IGNORECASE
_IM = re.IGNORECASE | re.MULTILINE

_RAW_INDICATORS: dict[str, tuple[tuple[str, int], ...]] = {
    "Appwrite": (
        (r"appwriteexception", _I),
        (r"document.*not.*found", _I),
        (r"collection.*not.*found", _I),
        (r"function.*execution.*failed", _I),
        (r"users\.get\(\)", _I),
        (r"database\.getcollection\(\)", _I),
    ),
    "C#": (
        (r"\.cs\(\d+,\d+\)", _I),
        (r"\bCS\d{4}\b", _I),
        (r"system\.\w+exception", _I),
        (r"program\.cs.*line", _I),
        (r"string\.isnullorempty", _I),
        (r"argumentnullexception", _I),
    ),
    "Ruby": (
        (r"\.rb:\d+", _I),
        (r"nomethoderror.*undefined method", _I),
        (r"nameerror.*undefined local variable", _I),
        (r"loaderror.*cannot load such file", _I),
        (r"from.*\.rb:\d+.*in", _I),
    ),
    "Go": (
        (r"\.go:\d+", _I),
        (r"panic:.*runtime error", _I),
        (r"goroutine \d+.*running", _I),
        (r"undefined:.*fmt\.", _I),
        (r"cannot use.*as type.*in assignment", _I),
    ),
    "Swift": (
        (r"\.swift:\d+", _I),
        (r"thread.*fatal error.*index out of range", _I),
        (r"exc_bad_access", _I),
        (r"viewcontroller\.swift", _I),
        (r"appdelegate\.swift", _I),
    ),
    "SQL": (
        (r"ERROR \d{4}.*\(\w+\)", _I),
        (r"table.*doesn.*exist", _I),
        (r"syntax error.*near.*from", _I),
        (r"duplicate entry.*for key", _I),
        (r"select.*from.*where", _I),
    ),
    "Docker": (
        (r"failed to solve.*executor failed", _I),
        (r"dockerfile:\d+", _I),
        (r"docker:.*error response from daemon", _I),
        (r"container exited with code", _I),
        (r"pull access denied", _I),
    ),
    "Git": (
        (r"fatal:.*not a git repository", _I),
        (r"error:.*local changes would be overwritten", _I),
        (r"conflict.*content.*merge conflict", _I),
        (r"automatic merge failed", _I),
        (r"git pull.*git status", _I),
    ),
    "Linux": (
        (r"bash:.*command not found", _I),
        (r"usr/bin/env.*no such file", _I),
        (r"permission denied.*cannot create directory", _I),
        (r"segmentation fault.*core dumped", _I),
        (r"mkdir:.*permission denied", _I),
    ),
    "Python": (
        (r"\.py[\s:\"]", _I),
        (r"traceback.*most recent call last", _I),
        (r"^\s*(file\s+|  File\s+)", _IM),
        (
            r"\b(nameerror|keyerror|valueerror|indentationerror|importerror"
            r"|attributeerror|indexerror|zerodivisionerror)\b",
            _I,
        ),
        (r"\^\s*$", re.MULTILINE),
    ),
    "Java": (
        (r"\.java:\d+", _I),
        (r"exception in thread", _I),
        (
            r"\b(nullpointerexception|classnotfoundexception"
            r"|arrayindexoutofboundsexception|illegalargumentexception)\b",
            _I,
        ),
        (r"\bat\s+[\w.$]+\(", _I),
        (r"caused by:", _I),
    ),
    "TypeScript": (
        (r"\.ts:\d+", _I),
        (r"\bts\d{4}:", _I),
        (r"property.*does not exist on type", _I),
        (r"type.*is not assignable to type", _I),
        (r"\.tsx:\d+", _I),
    ),
    "React": (
        (r"warning.*each child.*unique.*key", _I),
        (r"hooks can only be called", _I),
        (r"cannot update.*component.*while rendering", _I),
        (r"react.*error", _I),
        (r"\.jsx:\d+", _I),
    ),
    "Next.js": (
        (r"next.*error", _I),
        (r"getStaticProps|getServerSideProps", _I),
        (r"_app\.js|_document\.js", _I),
        (r"next/\w+", _I),
    ),
    "Node.js": (
        (r"\benoent\b", _I),
        (r"cannot find module", _I),
        (r"error.*node_modules", _I),
        (r"\bnode:\w+", _I),
    ),
    "JavaScript": (
        (r"\.js:\d+", _I),
        (
            r"\b(typeerror|referenceerror|syntaxerror)\b.*"
            r"\b(cannot read|is not defined|unexpected token)",
            _I,
        ),
        (r"\bat\s+.*\.js:", _I),
    ),
    "PHP": (
        (r"\.php.*line\s+\d+", _I),
        (r"fatal error.*php", _I),
        (r"parse error.*php", _I),
        (r"\$\w+.*undefined", _I),
        (r"call to undefined function", _I),
    ),
    "C++": (
        (r"\.cpp:\d+", _I),
        (r"\.h:\d+", _I),
        (r"\berror.*expected.*before", _I),
        (r"segmentation fault", _I),
        (r"core dumped", _I),
    ),
    "Rust": (
        (r"\.rs:\d+", _I),
        (r"\berror\[E\d+\]", _I),
        (r"thread.*panicked", _I),
        (r"cargo.*error", _I),
        (r"borrow of moved value", _I),
        (r"mismatched types", _I),
        (r"expected.*found", _I),
    ),
    "Kotlin": (
        (r"\.kt:\d+", _I),
        (r"kotlinnullpointerexception", _I),
        (r"kotlin.*error", _I),
        (r"mainactivity\.kt", _I),
        (r"unresolved reference.*println", _I),
    ),
    "HTML/CSS": (
        (r"\.html:\d+", _I),
        (r"\.css:\d+", _I),
        (r"css.*error", _I),
        (r"html.*validation.*error", _I),
    ),
}


class LanguageClassifier:
    """Scores error text against per-language indicator patterns.

    Each indicator contributes at most 1 to its language's score no matter
    how often it matches. The label with the strictly highest score wins;
    a zero score or a tie for first place yields ``None``.

    Example:
        classifier = LanguageClassifier()
        classifier.classify("NameError: name 'x' is not defined")  # "Python"
    """

    def __init__(
        self,
        indicators: dict[str, tuple[tuple[str, int], ...]] | None = None,
        compatible: dict[str, frozenset[str]] | None = None,
    ) -> None:
        raw = indicators if indicators is not None else _RAW_INDICATORS
        self._indicators: dict[str, tuple[re.Pattern[str], ...]] = {
            label: tuple(re.compile(pattern, flags) for pattern, flags in patterns)
            for label, patterns in raw.items()
        }
        self._compatible = compatible if compatible is not None else COMPATIBLE_LANGUAGES

    @property
    def labels(self) -> list[str]:
        """Languages the classifier can return."""
        return list(self._indicators)

    def scores(self, text: str) -> dict[str, int]:
        """Return the indicator score of every language for ``text``."""
        return {
            label: sum(1 for pattern in patterns if pattern.search(text))
            for label, patterns in self._indicators.items()
        }

    def classify(self, text: str) -> str | None:
        """Return the most likely language label, or None if there is no clear winner."""
        if not text:
            return None

        scores = self.scores(text)
        best = max(scores.values(), default=0)
        if best == 0:
            return None

        leaders = [label for label, score in scores.items() if score == best]
        if len(leaders) > 1:
            log.debug("language_classification_tie", leaders=leaders, score=best)
            return None
        return leaders[0]

    def are_compatible(self, declared: str, detected: str) -> bool:
        """True if the two labels are the same or belong to one family."""
        if declared == detected:
            return True
        return detected in self._compatible.get(declared, frozenset()) or declared in (
            self._compatible.get(detected, frozenset())
        )

    def check_language_mismatch(self, text: str, declared: str) -> str | None:
        """Return a warning when the text looks like another language.

        Args:
            text: Error text as pasted by the user.
            declared: Language label selected by the user.

        Returns:
            A human-readable warning, or None if there is nothing to warn about.
        """
        if declared in NEUTRAL_LANGUAGES:
            return None

        detected = self.classify(text)
        if detected is None or self.are_compatible(declared, detected):
            return None

        return (
            f"This looks like a {detected} error, but you've selected {declared}. "
            "Consider switching languages for better analysis."
        )


@functools.cache
def _get_default() -> LanguageClassifier:
    return LanguageClassifier()


def classify(text: str) -> str | None:
    """Classify ``text`` with the default indicator set."""
    return _get_default().classify(text)


def check_language_mismatch(text: str, declared: str) -> str | None:
    """Check ``text`` against ``declared`` with the default indicator set."""
    return _get_default().check_language_mismatch(text, declared)
