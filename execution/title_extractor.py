"""Title extraction and normalization for generated outlines.

The model is asked to declare a title on its own line. Extraction walks an
ordered list of rules; the first rule whose pattern matches wins and its
line is removed from the outline body.
"""

import re
from dataclasses import dataclass
from typing import Callable

MAX_TITLE_WORDS = 3

# Longer idioms that are allowed to exceed MAX_TITLE_WORDS
KNOWN_PHRASES = [
    "through the looking glass",
    "against the grain",
    "between a rock",
    "smoke and mirrors",
    "out of the blue",
    "against all odds",
    "behind the curtain",
    "down the rabbit hole",
    "into thin air",
    "above the fold",
]

# Articles, coordinating conjunctions and short prepositions
SMALL_WORDS = {"a", "an", "the", "and", "but", "or", "for", "nor", "in", "to", "on", "at", "by", "of"}

# Removed wherever they appear
_QUOTE_CHARS = '"\u201c\u201d'

# Stripped from the ends of each word
_WRAPPING_CHARS = "'`*_\u2018\u2019"


@dataclass(frozen=True)
class TitleFound:
    """A title declaration was found; remainder is the outline without it."""

    title: str
    remainder: str


@dataclass(frozen=True)
class TitleNotFound:
    """No usable title declaration; the whole text is the outline."""

    text: str


TitleMatch = TitleFound | TitleNotFound


def _capitalize(word: str) -> str:
    """Upper-case the first letter, skipping leading punctuation."""
    for i, char in enumerate(word):
        if char.isalpha():
            return word[:i] + char.upper() + word[i + 1:]
    return word


def normalize_title(raw: str) -> str:
    """Clean up a model-suggested title.

    Quotes and emphasis markers are removed, case is folded, titles
    longer than three words are cut to three unless they contain a known
    idiom, and title case is applied with small words kept lower case
    except in the first and last position. Applying it twice gives the
    same result as applying it once.
    """
    title = raw
    for quote in _QUOTE_CHARS:
        title = title.replace(quote, "")
    # Strip emphasis per word so truncation never exposes a wrapped word
    words = [word.strip(_WRAPPING_CHARS) for word in title.split()]
    words = [word for word in words if word]

    if len(words) > MAX_TITLE_WORDS:
        lowered = " ".join(words).lower()
        if not any(phrase in lowered for phrase in KNOWN_PHRASES):
            words = words[:MAX_TITLE_WORDS]

    last = len(words) - 1
    cased = []
    for i, word in enumerate(words):
        lower = word.lower()
        if 0 < i < last and lower in SMALL_WORDS:
            cased.append(lower)
        else:
            cased.append(_capitalize(lower))
    return " ".join(cased)


def _label_rule(label: str) -> tuple[re.Pattern, Callable[[re.Match], str]]:
    # Whole line, so surrounding markdown (**, #, -) goes with it
    pattern = re.compile(
        rf"^[^\n]*?{re.escape(label)}:([^\n]+)\n?",
        re.IGNORECASE | re.MULTILINE,
    )
    return pattern, lambda match: normalize_title(match.group(1))


TITLE_RULES = [
    _label_rule("Suggested Title"),
    _label_rule("Title"),
    _label_rule("Proposed Title"),
    _label_rule("Document Title"),
]


def extract_title(text: str, rules=None) -> TitleMatch:
    """Find the first title declaration in text.

    Args:
        text: Raw model output.
        rules: Ordered (pattern, extractor) pairs (defaults to TITLE_RULES).

    Returns:
        TitleFound with the normalized title and the stripped outline body,
        or TitleNotFound when no rule yields a non-empty title.
    """
    for pattern, extractor in rules or TITLE_RULES:
        match = pattern.search(text)
        if match is None:
            continue
        title = extractor(match)
        if not title:
            continue
        remainder = (text[:match.start()] + text[match.end():]).strip()
        return TitleFound(title=title, remainder=remainder)
    return TitleNotFound(text=text)
