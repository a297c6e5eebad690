"""Multilingual tokenization and keyword clean-up.

Handles whitespace-delimited scripts (English, Swedish, ...) word by word
and CJK runs character by character, since those scripts have no word
boundaries in running text.
"""

import re
from collections.abc import Iterable

from .stopwords import CJK_RE, has_cjk

# Hashtags are tag filters, never keywords
HASHTAG_RE = re.compile(r"#[^\s#]+")

# Separators for alphabetic scripts; apostrophes stay inside words ("what's")
_SPLIT_RE = re.compile(r"[\s,;:!?.()\[\]{}\"“”‘<>/\\|~`@#$%^&*+=，。！？；：、（）]+")

# A word inside a mixed-script token; \w also matches CJK, so stop at it
_CJK_CLASS = CJK_RE.pattern[1:-1]
_LATIN_WORD_RE = re.compile(rf"(?:(?![{_CJK_CLASS}])[^\W_])(?:(?![{_CJK_CLASS}])[\w-])*")

# Common misspellings in task queries: typo -> correction
COMMON_TYPOS = {
    "taks": "task",
    "tsak": "task",
    "takss": "tasks",
    "priorty": "priority",
    "priortiy": "priority",
    "piority": "priority",
    "opne": "open",
    "complated": "completed",
    "compelted": "completed",
    "copleted": "completed",
    "urgant": "urgent",
    "urgnet": "urgent",
    "overdu": "overdue",
    "overdeu": "overdue",
    "tommorow": "tomorrow",
    "tommorrow": "tomorrow",
    "tomorow": "tomorrow",
    "todya": "today",
    "toady": "today",
    "progres": "progress",
    "proggress": "progress",
    "deadine": "deadline",
    "dealine": "deadline",
}

_TYPO_RE = re.compile(
    r"\b(" + "|".join(sorted(COMMON_TYPOS, key=len, reverse=True)) + r")\b",
    re.IGNORECASE,
)


def correct_typos(text: str) -> str:
    """Replace known misspellings word by word, keeping everything else."""
    return _TYPO_RE.sub(lambda m: COMMON_TYPOS[m.group(1).lower()], text)


def _split_cjk(word: str) -> list[str]:
    """Split a token that contains CJK characters.

    Consecutive CJK characters are emitted as 2-character units followed by
    their single characters; embedded Latin words are kept whole.
    """
    units: list[str] = []
    i = 0
    while i < len(word):
        char = word[i]
        if CJK_RE.match(char):
            if i + 1 < len(word) and CJK_RE.match(word[i + 1]):
                units.extend([word[i : i + 2], char, word[i + 1]])
                i += 2
            else:
                units.append(char)
                i += 1
            continue
        match = _LATIN_WORD_RE.match(word, i)
        if match:
            units.append(match.group(0))
            i = match.end()
        else:
            i += 1
    return units


def tokenize(text: str) -> list[str]:
    """Split text into lowercase tokens in query order.

    Args:
        text: Free text (hashtags are skipped).

    Returns:
        Every token, repeats included. Stop words are NOT removed here.
    """
    if not text or not text.strip():
        return []

    cleaned = HASHTAG_RE.sub(" ", text)
    tokens: list[str] = []
    for word in _SPLIT_RE.split(cleaned):
        if not word:
            continue
        if has_cjk(word):
            tokens.extend(_split_cjk(word))
        else:
            stripped = word.replace("’", "'").strip("-_'")
            if stripped:
                tokens.append(stripped)

    return [t.lower() for t in tokens]


def dedupe_keywords(keywords: Iterable[str]) -> list[str]:
    """Case-insensitive exact deduplication, keeping first-seen order."""
    seen: dict[str, str] = {}
    for keyword in keywords:
        cleaned = keyword.strip()
        if cleaned and cleaned.lower() not in seen:
            seen[cleaned.lower()] = cleaned
    return list(seen.values())


def dedupe_overlapping(keywords: Iterable[str]) -> list[str]:
    """Drop keywords that are substrings of a longer kept CJK keyword.

    A short CJK unit such as "修" inside "修复" would otherwise be counted as
    a second, independent match of the same text. Latin keywords are left
    alone ("chat" and "chatt" are different words).

    Args:
        keywords: Keywords in priority order.

    Returns:
        Surviving keywords in their original order.
    """
    unique = dedupe_keywords(keywords)
    kept: list[str] = []
    for keyword in sorted(unique, key=len, reverse=True):
        lowered = keyword.lower()
        overlaps = has_cjk(keyword) and any(
            lowered in other.lower() and has_cjk(other) for other in kept
        )
        if not overlaps:
            kept.append(keyword)
    survivors = {k.lower() for k in kept}
    return [k for k in unique if k.lower() in survivors]
