"""Property term registry: multilingual vocabulary for task properties.

Each property kind (priority, status, due_date, time_context) maps canonical
category keys to their aliases, symbols and per-language synonyms. User
terms are layered over the built-in tables and the merged result is published
as an immutable, versioned TermSnapshot. Queries capture one snapshot and
parse against it, so a configuration change never shows up half-applied.
"""

import logging
import threading
from collections.abc import Iterable, Mapping
from types import MappingProxyType
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

logger = logging.getLogger(__name__)

PropertyKind = Literal["priority", "status", "due_date", "time_context"]
PROPERTY_KINDS: tuple[PropertyKind, ...] = (
    "priority",
    "status",
    "due_date",
    "time_context",
)

# Only status accepts brand-new categories from users; the other kinds have
# fixed semantics (numeric priority, date arithmetic).
EXTENSIBLE_KINDS = frozenset({"status"})


class TermEntry(BaseModel):
    """Vocabulary for one category key."""

    model_config = ConfigDict(frozen=True)

    aliases: tuple[str, ...] = ()
    symbols: tuple[str, ...] = ()
    synonyms: dict[str, tuple[str, ...]] = Field(default_factory=dict)

    def phrases(self) -> list[str]:
        """All natural-language synonyms across languages."""
        return [term for terms in self.synonyms.values() for term in terms]

    def layered_over(self, base: Optional["TermEntry"]) -> "TermEntry":
        """Merge this (user) entry on top of a built-in entry."""
        if base is None:
            return self
        synonyms = dict(base.synonyms)
        for language, terms in self.synonyms.items():
            synonyms[language] = tuple(dict.fromkeys(terms + base.synonyms.get(language, ())))
        return TermEntry(
            aliases=tuple(dict.fromkeys(self.aliases + base.aliases)),
            symbols=tuple(dict.fromkeys(self.symbols + base.symbols)),
            synonyms=synonyms,
        )


def _entry(
    aliases: Iterable[str] = (),
    symbols: Iterable[str] = (),
    **synonyms: Iterable[str],
) -> TermEntry:
    return TermEntry(
        aliases=tuple(aliases),
        symbols=tuple(symbols),
        synonyms={lang: tuple(terms) for lang, terms in synonyms.items()},
    )


# =============================================================================
# Built-in vocabulary (English / Chinese / Swedish)
# =============================================================================

INTERNAL_TERMS: dict[str, dict[str, TermEntry]] = {
    "priority": {
        "1": _entry(
            ["high", "highest", "top", "p1", "critical"],
            ["⏫", "🔺"],
            en=["high", "highest", "top", "critical"],
            zh=["最高", "高"],
            sv=["högst", "hög", "kritisk"],
        ),
        "2": _entry(
            ["medium", "normal", "mid", "p2"],
            ["🔼"],
            en=["medium", "normal"],
            zh=["中等", "普通", "中"],
            sv=["medel", "normal"],
        ),
        "3": _entry(
            ["low", "minor", "p3"],
            ["🔽"],
            en=["low", "minor"],
            zh=["次要", "低"],
            sv=["låg", "mindre"],
        ),
        "4": _entry(
            ["lowest", "trivial", "p4"],
            ["⏬"],
            en=["lowest", "trivial"],
            zh=["最低"],
            sv=["lägst"],
        ),
    },
    "status": {
        "open": _entry(
            ["o", "todo", "to-do", "new", "unstarted", "incomplete", "pending"],
            [" "],
            en=["open", "todo", "to do", "not started", "unstarted", "incomplete", "pending"],
            zh=["待办", "未完成", "未开始"],
            sv=["öppen", "öppna", "att göra"],
        ),
        "inProgress": _entry(
            ["ip", "wip", "in-progress", "inprogress", "doing", "active", "ongoing", "started"],
            ["/", "~"],
            en=["in progress", "in-progress", "ongoing", "wip", "started"],
            zh=["进行中", "正在做", "处理中"],
            sv=["pågående", "påbörjad"],
        ),
        "completed": _entry(
            ["x", "c", "done", "complete", "finished", "closed", "resolved"],
            ["x", "X"],
            en=["completed", "finished", "resolved", "closed"],
            zh=["已完成", "完成", "做完"],
            sv=["klar", "klara", "färdig", "avklarad"],
        ),
        "cancelled": _entry(
            ["-", "canceled", "abandoned", "dropped", "discarded", "rejected"],
            ["-"],
            en=["cancelled", "canceled", "abandoned", "dropped"],
            zh=["已取消", "取消", "放弃"],
            sv=["avbruten", "inställd"],
        ),
    },
    "due_date": {
        "any": _entry(["all", "has", "dated", "yes"]),
        "none": _entry(
            ["no-date", "nodate", "undated", "no"],
            en=["no due date", "no date", "without date", "undated"],
            zh=["没有截止日期", "无截止日期", "无日期"],
            sv=["utan datum"],
        ),
        "overdue": _entry(
            ["od", "late", "past-due"],
            en=["overdue", "past due", "late"],
            zh=["过期", "逾期", "延迟"],
            sv=["försenad", "försenade"],
        ),
        "future": _entry(
            ["upcoming", "later"],
            en=["future", "upcoming"],
            zh=["未来", "将来", "以后"],
            sv=["framtida", "kommande"],
        ),
        "today": _entry(["tod"]),
        "tomorrow": _entry(["tom"]),
        "yesterday": _entry(),
        "week": _entry(["this-week", "thisweek"]),
        "last-week": _entry(["lastweek"]),
        "next-week": _entry(["nextweek"]),
        "month": _entry(["this-month", "thismonth"]),
        "last-month": _entry(["lastmonth"]),
        "next-month": _entry(["nextmonth"]),
        "year": _entry(["this-year", "thisyear"]),
        "last-year": _entry(["lastyear"]),
        "next-year": _entry(["nextyear"]),
    },
    "time_context": {
        "today": _entry(["tod"], en=["today", "tonight"], zh=["今天", "今日"], sv=["idag", "i dag"]),
        "tomorrow": _entry(en=["tomorrow"], zh=["明天", "明日"], sv=["imorgon", "i morgon"]),
        "yesterday": _entry(en=["yesterday"], zh=["昨天"], sv=["igår", "i går"]),
        "this-week": _entry(
            ["week"],
            en=["this week"],
            zh=["本周", "这周", "这个星期"],
            sv=["denna vecka", "den här veckan"],
        ),
        "next-week": _entry(en=["next week"], zh=["下周", "下个星期"], sv=["nästa vecka"]),
        "last-week": _entry(
            en=["last week", "past week"], zh=["上周", "上个星期"], sv=["förra veckan"]
        ),
        "this-month": _entry(
            ["month"], en=["this month"], zh=["本月", "这个月"], sv=["denna månad"]
        ),
        "next-month": _entry(en=["next month"], zh=["下个月", "下月"], sv=["nästa månad"]),
        "last-month": _entry(
            en=["last month", "past month"], zh=["上个月", "上月"], sv=["förra månaden"]
        ),
        "this-year": _entry(["year"], en=["this year"], zh=["今年"], sv=["i år"]),
        "next-year": _entry(en=["next year"], zh=["明年"], sv=["nästa år"]),
        "last-year": _entry(en=["last year"], zh=["去年"], sv=["förra året"]),
    },
}

# Words that name a property without picking a category ("urgent", "deadline")
GENERAL_TERMS: dict[str, tuple[str, ...]] = {
    "priority": (
        "priority", "urgent", "important", "prio",
        "优先级", "优先", "紧急", "重要",
        "prioritet", "viktig", "brådskande",
    ),
    "due_date": (
        "due date", "deadline", "due",
        "截止日期", "到期", "期限",
        "förfallodatum", "förfaller",
    ),
    "status": ("status", "state", "状态", "tillstånd"),
}


# =============================================================================
# Snapshot
# =============================================================================


class TermSnapshot:
    """Immutable merged vocabulary plus its lookup indexes."""

    def __init__(self, tables: Mapping[str, Mapping[str, TermEntry]], version: int) -> None:
        self._version = version
        self._tables = MappingProxyType(
            {kind: MappingProxyType(dict(entries)) for kind, entries in tables.items()}
        )
        self._keys: dict[str, dict[str, str]] = {}
        self._aliases: dict[str, dict[str, str]] = {}
        self._symbols: dict[str, dict[str, str]] = {}
        self._phrases: dict[str, tuple[tuple[str, str], ...]] = {}

        for kind, entries in self._tables.items():
            keys: dict[str, str] = {}
            aliases: dict[str, str] = {}
            symbols: dict[str, str] = {}
            phrases: dict[str, str] = {}
            for key, entry in entries.items():
                keys[key.lower()] = key
                for alias in entry.aliases:
                    aliases.setdefault(alias.strip().lower(), key)
                for symbol in entry.symbols:
                    symbols.setdefault(symbol.lower(), key)
                for phrase in entry.phrases():
                    phrases.setdefault(phrase.lower(), key)
            self._keys[kind] = keys
            self._aliases[kind] = aliases
            self._symbols[kind] = symbols
            self._phrases[kind] = tuple(
                sorted(phrases.items(), key=lambda item: len(item[0]), reverse=True)
            )

    @property
    def version(self) -> int:
        return self._version

    @property
    def tables(self) -> Mapping[str, Mapping[str, TermEntry]]:
        return self._tables

    def categories(self, kind: str) -> list[str]:
        return list(self._tables.get(kind, {}))

    def entry(self, kind: str, key: str) -> Optional[TermEntry]:
        return self._tables.get(kind, {}).get(key)

    def resolve(self, kind: str, value: str) -> Optional[str]:
        """Resolve a raw token to its canonical category key.

        Order: category key, then aliases, then symbols. Case-insensitive.

        Args:
            kind: Property kind ("priority", "status", ...).
            value: Raw token from the query.

        Returns:
            Canonical category key, or None if nothing matches.
        """
        if value is None:
            return None
        normalized = str(value).strip().lower()
        if normalized:
            key = self._keys.get(kind, {}).get(normalized)
            if key is not None:
                return key
            key = self._aliases.get(kind, {}).get(normalized)
            if key is not None:
                return key
        symbols = self._symbols.get(kind, {})
        return symbols.get(str(value).lower()) or symbols.get(normalized)

    def resolve_many(self, kind: str, values: Iterable[str]) -> list[str]:
        """Resolve several tokens; unresolved ones are skipped, duplicates merged."""
        resolved: list[str] = []
        for value in values:
            key = self.resolve(kind, value)
            if key is not None and key not in resolved:
                resolved.append(key)
        return resolved

    def phrases(self, kind: str) -> tuple[tuple[str, str], ...]:
        """(lowercased phrase, key) pairs, longest phrase first."""
        return self._phrases.get(kind, ())

    def general_terms(self, kind: str) -> tuple[str, ...]:
        return GENERAL_TERMS.get(kind, ())

    def to_prompt_dict(self) -> dict[str, dict[str, list[str]]]:
        """Compact view of the vocabulary for LLM prompts."""
        result: dict[str, dict[str, list[str]]] = {}
        for kind, entries in self._tables.items():
            result[kind] = {
                key: list(dict.fromkeys([*entry.aliases, *entry.phrases()]))
                for key, entry in entries.items()
            }
        return result


def merge_terms(
    user_terms: Optional[Mapping[str, Mapping[str, Any]]] = None,
) -> dict[str, dict[str, TermEntry]]:
    """Layer user terms over the built-in tables.

    Invalid user entries are skipped with a warning. A user alias that equals
    a different category's key is dropped so keys can never be shadowed.

    Args:
        user_terms: kind -> category key -> {"aliases", "symbols", "synonyms"}.

    Returns:
        Merged tables (fresh dicts, safe to freeze).
    """
    merged = {kind: dict(entries) for kind, entries in INTERNAL_TERMS.items()}

    for kind, categories in (user_terms or {}).items():
        if kind not in merged:
            logger.warning("Ignoring user terms for unknown property %r", kind)
            continue
        existing = {key.lower(): key for key in merged[kind]}
        for raw_key, raw_entry in categories.items():
            key = existing.get(str(raw_key).strip().lower())
            if key is None:
                if kind not in EXTENSIBLE_KINDS:
                    logger.warning(
                        "Ignoring unknown %s category %r (not extensible)", kind, raw_key
                    )
                    continue
                key = str(raw_key).strip()
            try:
                user_entry = TermEntry.model_validate(raw_entry or {})
            except ValidationError as e:
                logger.warning("Invalid user terms for %s.%s: %s", kind, raw_key, e)
                continue
            merged[kind][key] = user_entry.layered_over(merged[kind].get(key))
            existing[key.lower()] = key

    for kind, entries in merged.items():
        keys = {key.lower(): key for key in entries}
        for key, entry in list(entries.items()):
            shadowing = [
                a for a in entry.aliases
                if a.strip().lower() in keys and keys[a.strip().lower()] != key
            ]
            if shadowing:
                logger.warning(
                    "Dropping %s aliases %s of %r: they name other categories",
                    kind,
                    shadowing,
                    key,
                )
                entries[key] = entry.model_copy(
                    update={"aliases": tuple(a for a in entry.aliases if a not in shadowing)}
                )

    return merged


# =============================================================================
# Registry
# =============================================================================


class PropertyTermRegistry:
    """Publishes the current TermSnapshot; rebuilds it when user terms change.

    Reads are lock-free (a single attribute read). Updates build the new
    snapshot first, then swap it in under a lock.
    """

    def __init__(self, user_terms: Optional[Mapping[str, Mapping[str, Any]]] = None) -> None:
        self._lock = threading.Lock()
        self._snapshot = TermSnapshot(merge_terms(user_terms), version=1)

    def snapshot(self) -> TermSnapshot:
        """Return the current snapshot (capture once per query)."""
        return self._snapshot

    @property
    def version(self) -> int:
        return self._snapshot.version

    def update(self, user_terms: Optional[Mapping[str, Mapping[str, Any]]]) -> TermSnapshot:
        """Replace the user layer and publish a new snapshot.

        Args:
            user_terms: The complete new user layer.

        Returns:
            The newly published snapshot.
        """
        tables = merge_terms(user_terms)
        with self._lock:
            snapshot = TermSnapshot(tables, version=self._snapshot.version + 1)
            self._snapshot = snapshot
        logger.info("Property terms rebuilt (version %d)", snapshot.version)
        return snapshot

    def resolve(self, kind: str, value: str) -> Optional[str]:
        return self._snapshot.resolve(kind, value)

    def resolve_many(self, kind: str, values: Iterable[str]) -> list[str]:
        return self._snapshot.resolve_many(kind, values)
