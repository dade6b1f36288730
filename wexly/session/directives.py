"""
Inline ``[AVATAR: <name>]`` directives in assistant replies.
"""

import re
from typing import Optional, Tuple

from wexly.core.models import EMOTIONS


AVATAR_DIRECTIVE = re.compile(r"\[AVATAR:\s*(\w+)\]", re.IGNORECASE)


def parse_directive(text: str) -> Tuple[str, Optional[str]]:
    """
    Strip every directive tag and return the first recognised emotion.

    Unrecognised names are still stripped but yield no emotion.

    Returns:
        (display text, emotion or None)
    """
    emotion = None
    for match in AVATAR_DIRECTIVE.finditer(text):
        name = match.group(1).lower()
        if name in EMOTIONS:
            emotion = name
            break

    clean = AVATAR_DIRECTIVE.sub("", text)
    clean = re.sub(r"[ \t]{2,}", " ", clean).strip()
    return clean, emotion
