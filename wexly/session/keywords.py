"""Keyword table mapping assistant replies to presentation emotions."""

import re
from typing import Optional, Tuple

CELEBRATING: Tuple[str, ...] = (
    "congratulations",
    "amazing",
    "awesome",
    "fantastic",
    "incredible",
    "nailed it",
    "well done",
    "bravo",
)

EXCITED: Tuple[str, ...] = (
    "wow",
    "exciting",
    "love it",
    "love that",
    "so cool",
    "great energy",
)

DANCING: Tuple[str, ...] = (
    "dance",
    "dancing",
    "groove",
    "groovy",
    "beat",
    "upbeat",
    "rhythm",
)

ENCOURAGING: Tuple[str, ...] = (
    "keep it up",
    "keep going",
    "keep practicing",
    "you can do it",
    "don't give up",
    "great job",
    "good job",
    "nice work",
)

SUGGESTING: Tuple[str, ...] = (
    "try",
    "suggest",
    "how about",
    "you could",
    "you might",
    "consider",
    "idea",
)

EMPATHETIC: Tuple[str, ...] = (
    "sorry",
    "understand how",
    "that sounds hard",
    "frustrating",
    "don't worry",
)

CURIOUS: Tuple[str, ...] = (
    "curious",
    "tell me more",
    "what inspired",
    "wonder",
    "interesting",
)

CONCERNED: Tuple[str, ...] = (
    "problem",
    "issue",
    "couldn't hear",
    "could not hear",
    "trouble",
)

FOCUSED: Tuple[str, ...] = (
    "focus",
    "concentrate",
    "practice",
    "exercise",
    "scale",
)

UNDERSTANDING: Tuple[str, ...] = (
    "i see",
    "got it",
    "makes sense",
    "understood",
)

# Table order breaks ties between equal hit counts
EMOTION_KEYWORDS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("celebrating", CELEBRATING),
    ("excited", EXCITED),
    ("dancing", DANCING),
    ("encouraging", ENCOURAGING),
    ("suggesting", SUGGESTING),
    ("empathetic", EMPATHETIC),
    ("curious", CURIOUS),
    ("concerned", CONCERNED),
    ("focused", FOCUSED),
    ("understanding", UNDERSTANDING),
)

_PATTERNS = tuple(
    (emotion, tuple(re.compile(r"\b" + re.escape(kw) + r"\b") for kw in keywords))
    for emotion, keywords in EMOTION_KEYWORDS
)


def keyword_emotion(text: str) -> Optional[str]:
    """
    Pick the emotion whose keywords appear most often in ``text``.

    Returns None when no keyword matches.
    """
    text_lower = text.lower()
    best_emotion: Optional[str] = None
    best_count = 0

    for emotion, patterns in _PATTERNS:
        count = sum(1 for pattern in patterns if pattern.search(text_lower))
        if count > best_count:
            best_count = count
            best_emotion = emotion

    return best_emotion
