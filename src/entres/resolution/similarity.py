"""Name similarity scorers.

All scorers are pure and symmetric. ``name_similarity`` combines them in
priority order, stopping at the first rule that applies:

1. Exact match on normalized text -> 1.0
2. Semantic edge cases (synonym/abbreviation table, initials, acronyms)
   -> 0.85 to 0.95
3. Weighted blend: 0.5 * edit distance + 0.3 * token Jaccard
   + 0.2 * substring containment

Phonetic (Soundex) similarity is a separate scorer used by the match engine.
"""

import re

from pydantic import BaseModel
from rapidfuzz.distance import Levenshtein

from entres.text import normalize_text, tokenize

# Blend weights
W_EDIT_DISTANCE = 0.5
W_TOKEN_JACCARD = 0.3
W_CONTAINMENT = 0.2

# Edge-case scores
SYNONYM_SCORE = 0.95
EXPANSION_SCORE = 0.9
INITIALS_SCORE = 0.85
ACRONYM_SCORE = 0.85

PHONETIC_MATCH_SCORE = 0.8

# Equivalent phrasings, canonical form first. Entries are already normalized.
SEMANTIC_EQUIVALENTS: tuple[tuple[str, ...], ...] = (
    ("artificial intelligence", "ai"),
    ("machine learning", "ml"),
    ("university", "univ", "uni"),
    ("doctor", "dr"),
    ("professor", "prof"),
    ("mister", "mr"),
    ("incorporated", "inc"),
    ("corporation", "corp"),
    ("company", "co"),
    ("limited", "ltd"),
    ("international", "intl"),
    ("department", "dept"),
    ("institute", "inst"),
    ("association", "assn", "assoc"),
    ("saint", "st"),
    ("mount", "mt"),
    ("united states", "united states of america", "usa", "us"),
    ("united kingdom", "uk"),
    ("new york city", "nyc"),
)

_CANONICAL: dict[str, str] = {
    variant: group[0] for group in SEMANTIC_EQUIVALENTS for variant in group
}
_GROUP_INDEX: dict[str, int] = {
    variant: i for i, group in enumerate(SEMANTIC_EQUIVALENTS) for variant in group
}
_MAX_PHRASE_TOKENS = max(len(v.split()) for v in _CANONICAL)

_SOUNDEX_CLASSES = {
    "BFPV": "1",
    "CGJKQSXZ": "2",
    "DT": "3",
    "L": "4",
    "MN": "5",
    "R": "6",
}
_SOUNDEX_CODES = {ch: digit for letters, digit in _SOUNDEX_CLASSES.items() for ch in letters}
_NON_ALPHA = re.compile(r"[^A-Z]")
_EMPTY_SOUNDEX = "0000"


def edit_distance_similarity(a: str, b: str) -> float:
    """Levenshtein similarity: 1 - distance / longer length, floored at 0."""
    max_length = max(len(a), len(b))
    if max_length == 0:
        return 1.0
    return max(0.0, 1.0 - Levenshtein.distance(a, b) / max_length)


def token_jaccard(a: str, b: str) -> float:
    """Jaccard index over whitespace tokens."""
    tokens_a, tokens_b = set(tokenize(a)), set(tokenize(b))
    union = tokens_a | tokens_b
    if not union:
        return 0.0
    return len(tokens_a & tokens_b) / len(union)


def substring_containment(a: str, b: str) -> float:
    """Length ratio when one string contains the other, else 0."""
    if not a or not b:
        return 0.0
    if a in b or b in a:
        return min(len(a), len(b)) / max(len(a), len(b))
    return 0.0


def blended_similarity(a: str, b: str) -> float:
    """Weighted blend of edit distance, token overlap and containment."""
    return (
        W_EDIT_DISTANCE * edit_distance_similarity(a, b)
        + W_TOKEN_JACCARD * token_jaccard(a, b)
        + W_CONTAINMENT * substring_containment(a, b)
    )


def canonicalize(text: str) -> str:
    """Replace every known variant phrase with its canonical form.

    Longest phrases win, so "united states of america" is consumed whole
    before "united states" is considered.
    """
    tokens = tokenize(text)
    out: list[str] = []
    i = 0
    while i < len(tokens):
        for size in range(min(_MAX_PHRASE_TOKENS, len(tokens) - i), 0, -1):
            canonical = _CANONICAL.get(" ".join(tokens[i : i + size]))
            if canonical is not None:
                out.append(canonical)
                i += size
                break
        else:
            out.append(tokens[i])
            i += 1
    return " ".join(out)


def initials_match(a: str, b: str) -> bool:
    """Check the initials rule.

    Both names must have the same number of words, and each pair of
    corresponding words must be equal or one must be a single letter that
    starts the other ("j smith" vs "john smith"). At least one initial must
    be involved.
    """
    tokens_a, tokens_b = tokenize(a), tokenize(b)
    if not tokens_a or len(tokens_a) != len(tokens_b):
        return False

    used_initial = False
    for x, y in zip(tokens_a, tokens_b):
        if x == y:
            continue
        if (len(x) == 1 and y.startswith(x)) or (len(y) == 1 and x.startswith(y)):
            used_initial = True
            continue
        return False
    return used_initial


def _is_acronym_of(short: str, long: str) -> bool:
    tokens = tokenize(long)
    if " " in short or len(short) < 2 or len(tokens) < 2:
        return False
    if len(short) != len(tokens):
        return False
    return all(token.startswith(letter) for letter, token in zip(short, tokens))


def acronym_match(a: str, b: str) -> bool:
    """Check whether one name is the acronym of the other ("ibm" vs
    "international business machines")."""
    return _is_acronym_of(a, b) or _is_acronym_of(b, a)


def semantic_similarity(a: str, b: str) -> float:
    """Score the semantic edge cases of two normalized names.

    Returns:
        0.95 for names in the same synonym group, 0.9 for names equal after
        expanding known abbreviations, 0.85 for the initials or acronym
        rules, 0.0 when no edge case applies.
    """
    group_a, group_b = _GROUP_INDEX.get(a), _GROUP_INDEX.get(b)
    if group_a is not None and group_a == group_b:
        return SYNONYM_SCORE

    if canonicalize(a) == canonicalize(b):
        return EXPANSION_SCORE

    if initials_match(a, b):
        return INITIALS_SCORE
    if acronym_match(a, b):
        return ACRONYM_SCORE

    return 0.0


def name_similarity(a: str, b: str) -> float:
    """Similarity of two display names, 0.0 to 1.0. Symmetric.

    Args:
        a: First name (raw; normalized internally).
        b: Second name.

    Returns:
        Similarity score.
    """
    if not a or not b:
        return 0.0
    # Names with nothing left after normalization (e.g. "!!!") only match themselves
    if a == b:
        return 1.0

    norm_a, norm_b = normalize_text(a), normalize_text(b)
    if not norm_a or not norm_b:
        return 0.0

    if norm_a == norm_b:
        return 1.0

    semantic = semantic_similarity(norm_a, norm_b)
    if semantic > 0:
        return semantic

    return blended_similarity(norm_a, norm_b)


def soundex(name: str) -> str:
    """Four-character Soundex-style code.

    Keeps the first letter, maps later consonants to their class digit,
    skips vowels and other letters, collapses a digit equal to the previous
    code character, then pads with zeros or truncates to four characters.
    A name with no letters encodes as "0000".

    Examples:
        >>> soundex("Robert"), soundex("Rupert")
        ('R163', 'R163')
    """
    letters = _NON_ALPHA.sub("", name.upper())
    if not letters:
        return _EMPTY_SOUNDEX

    code = letters[0]
    for ch in letters[1:]:
        if len(code) >= 4:
            break
        digit = _SOUNDEX_CODES.get(ch)
        if digit is not None and code[-1] != digit:
            code += digit

    return code.ljust(4, "0")[:4]


def phonetic_similarity(a: str, b: str) -> float:
    """0.8 when both names share a Soundex code, else 0.0."""
    code_a, code_b = soundex(a), soundex(b)
    if code_a == _EMPTY_SOUNDEX or code_b == _EMPTY_SOUNDEX:
        return 0.0
    return PHONETIC_MATCH_SCORE if code_a == code_b else 0.0


class SimilarityBreakdown(BaseModel):
    """Per-scorer view of a name comparison, for debugging and reports."""

    name_a: str
    name_b: str
    normalized_a: str
    normalized_b: str
    edit_distance: float
    token_jaccard: float
    containment: float
    semantic: float
    phonetic: float
    soundex_a: str
    soundex_b: str
    score: float
    rule: str


def similarity_breakdown(a: str, b: str) -> SimilarityBreakdown:
    """Run every scorer on two names and report which rule decided the score."""
    norm_a, norm_b = normalize_text(a), normalize_text(b)
    semantic = semantic_similarity(norm_a, norm_b) if norm_a and norm_b else 0.0
    score = name_similarity(a, b)

    if a and a == b:
        rule = "exact"
    elif not norm_a or not norm_b:
        rule = "empty"
    elif norm_a == norm_b:
        rule = "exact"
    elif semantic > 0:
        rule = "semantic"
    else:
        rule = "blend"

    return SimilarityBreakdown(
        name_a=a,
        name_b=b,
        normalized_a=norm_a,
        normalized_b=norm_b,
        edit_distance=edit_distance_similarity(norm_a, norm_b),
        token_jaccard=token_jaccard(norm_a, norm_b),
        containment=substring_containment(norm_a, norm_b),
        semantic=semantic,
        phonetic=phonetic_similarity(a, b),
        soundex_a=soundex(a),
        soundex_b=soundex(b),
        score=score,
        rule=rule,
    )


__all__ = [
    "SEMANTIC_EQUIVALENTS",
    "SimilarityBreakdown",
    "acronym_match",
    "blended_similarity",
    "canonicalize",
    "edit_distance_similarity",
    "initials_match",
    "name_similarity",
    "phonetic_similarity",
    "semantic_similarity",
    "similarity_breakdown",
    "soundex",
    "substring_containment",
    "token_jaccard",
]
