"""Stop words, generic query words and CJK script helpers.

Stop words are removed from keywords before matching. Generic words
(question words, filler verbs, pronouns, generic nouns) are only used to
measure how vague a query is, and are counted before stop-word removal.
"""

import re
from collections.abc import Iterable
from typing import Optional

# CJK Unified Ideographs (+ Ext A/B, compatibility), Hiragana, Katakana
CJK_RE = re.compile(
    "[\u4e00-\u9fff\u3400-\u4dbf\uf900-\ufaff\U00020000-\U0002a6df"
    "\u3040-\u309f\u30a0-\u30ff]"
)

# Always active; user stop words are merged on top
INTERNAL_STOP_WORDS = frozenset(
    {
        # English articles, prepositions, copulas
        "the", "a", "an", "and", "or", "but", "for", "of", "with", "by", "from",
        "as", "at", "on", "to", "is", "was", "are", "were", "be", "been", "it",
        # English query words
        "me", "my", "i", "all", "how", "what", "when", "where", "why", "which",
        "who", "whom", "whose", "do", "does", "did", "can", "could", "should",
        "would", "will", "have", "has", "had", "any",
        # English contractions
        "what's", "where's", "how's", "who's", "i'm", "i've", "i'd", "i'll",
        "we're", "you're", "there's", "it's",
        # Generic nouns that never narrow a search
        "task", "tasks", "item", "items", "thing", "things", "stuff",
        # Chinese
        "我", "的", "了", "吗", "呢", "啊", "如何", "怎么", "怎样", "什么",
        "哪些", "哪个", "哪里", "为什么", "和", "在", "是",
        # Swedish
        "och", "att", "det", "som", "en", "ett", "på", "jag", "mig", "vad",
    }
)

# Words that carry no task-specific content
GENERIC_QUERY_WORDS = frozenset(
    {
        # English question words
        "what", "when", "where", "which", "how", "why", "who", "whom", "whose",
        # English generic verbs
        "do", "does", "did", "doing", "done", "make", "makes", "made", "making",
        "work", "works", "worked", "working", "get", "gets", "got", "getting",
        "go", "goes", "went", "going", "come", "comes", "came", "coming",
        "take", "takes", "took", "taking", "give", "gives", "gave", "giving",
        "focus", "start", "handle", "tackle",
        # English modal and auxiliary verbs
        "should", "could", "would", "might", "must", "can", "may", "shall",
        "will", "need", "needs", "needed", "needing", "have", "has", "had",
        "having", "want", "wants", "wanted", "wanting",
        # English pronouns
        "i", "me", "my", "we", "us", "our", "you", "your",
        # English generic nouns
        "task", "tasks", "item", "items", "thing", "things", "job", "jobs",
        "stuff", "matter", "matters", "issue", "issues", "problem", "problems",
        "anything", "something", "everything", "next", "now",
        # English contractions of the words above
        "what's", "where's", "how's", "who's", "i'm", "i've", "i'd", "i'll",
        "we're", "we've", "you're", "should've", "don't", "can't",
        # Chinese
        "什么", "怎么", "哪里", "哪个", "为什么", "怎样", "谁", "哪", "何",
        "做", "可以", "能", "应该", "需要", "有", "要", "干", "搞", "弄", "办",
        "处理", "任务", "事情", "东西", "工作", "活", "问题", "事", "事儿",
        "我", "我们", "你",
        # Swedish
        "vad", "när", "var", "vilken", "hur", "varför", "göra", "gör", "kan",
        "ska", "borde", "måste", "uppgift", "uppgifter", "saker", "jag", "vi",
        # German
        "was", "wann", "wo", "welche", "wie", "warum", "machen", "tun",
        "sollte", "muss", "aufgabe", "aufgaben", "ich",
        # Spanish and French
        "qué", "cuándo", "cómo", "hacer", "tarea", "tareas", "quoi", "quand",
        "comment", "faire", "tâche", "tâches",
        # Japanese
        "なに", "いつ", "どこ", "どう", "する", "やる", "できる", "こと", "もの",
        "タスク", "仕事",
    }
)


# Characters of CJK generic words; a CJK unit made only of these is generic
GENERIC_CJK_CHARS = frozenset(
    char for word in GENERIC_QUERY_WORDS for char in word if CJK_RE.match(char)
)


def has_cjk(text: str) -> bool:
    """Return True if text contains any CJK character."""
    return CJK_RE.search(text) is not None


def get_stop_words(user_stop_words: Optional[Iterable[str]] = None) -> frozenset[str]:
    """Merge internal and user-defined stop words (lowercased)."""
    if not user_stop_words:
        return INTERNAL_STOP_WORDS
    extra = {w.strip().lower() for w in user_stop_words if w and w.strip()}
    return INTERNAL_STOP_WORDS | extra


def filter_stop_words(
    words: Iterable[str], stop_words: Optional[frozenset[str]] = None
) -> list[str]:
    """Remove stop words, empty strings and single non-CJK characters.

    Args:
        words: Tokens in query order.
        stop_words: Stop-word set to use (defaults to the internal set).

    Returns:
        Remaining tokens in their original order.
    """
    active = stop_words or INTERNAL_STOP_WORDS
    result = []
    for word in words:
        cleaned = word.strip()
        if not cleaned:
            continue
        if len(cleaned) == 1 and not has_cjk(cleaned):
            continue
        if cleaned.lower() in active:
            continue
        result.append(cleaned)
    return result


def vagueness_ratio(
    tokens: list[str], generic_words: Optional[Iterable[str]] = None
) -> float:
    """Fraction of tokens that are generic/question words.

    Membership is exact and case-insensitive. CJK units (bigrams and single
    characters from the tokenizer) also count when every character belongs
    to a generic word. An empty token list has a ratio of 0.0.

    Args:
        tokens: Raw tokens, before stop-word removal.
        generic_words: Extra user generic words merged with the built-in list.

    Returns:
        Ratio in [0.0, 1.0].
    """
    if not tokens:
        return 0.0
    vocabulary = GENERIC_QUERY_WORDS
    if generic_words:
        vocabulary = vocabulary | {w.strip().lower() for w in generic_words if w}
    generic = sum(1 for token in tokens if _is_generic(token.lower(), vocabulary))
    return generic / len(tokens)


def _is_generic(token: str, vocabulary: frozenset[str]) -> bool:
    if token in vocabulary:
        return True
    return has_cjk(token) and all(char in GENERIC_CJK_CHARS for char in token)
