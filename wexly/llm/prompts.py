"""Prompt construction for the chat collaborator.

Turns the latest analysis snapshots into the user prompts sent after an
utterance, builds creative-suggestion prompts in three collaboration
modes, and formats JSON suggestion replies for display.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from wexly.analyzers.companion import format_for_ai
from wexly.core.models import (
    EMOTIONS,
    CompanionAnalysis,
    ContentClassification,
)

logger = logging.getLogger("llm.prompts")

SYSTEM_PROMPT = (
    "You are Wexly, a helpful AI musical companion. You provide concise, "
    "friendly responses about music, audio analysis, and creative suggestions. "
    "Keep responses brief and engaging.\n\n"
    "You may add one tag of the form [AVATAR: <emotion>] to show how you feel "
    f"about your reply. Valid emotions: {', '.join(EMOTIONS)}."
)

CREATIVE_MODES: Tuple[str, ...] = ("enhance", "create", "experiment")
MUSIC_PROMPT_CONFIDENCE: float = 0.3

DEFAULT_TEMPO: int = 120


@dataclass(frozen=True)
class UtterancePrompt:
    """Text to send to the chat collaborator and its display label."""

    prompt: str
    display_text: str


@dataclass(frozen=True)
class CreativeContext:
    """Musical context used by the creative-suggestion prompts."""

    tempo: int = DEFAULT_TEMPO
    key: str = "C"
    genre: str = "unknown"
    mood: str = "neutral"
    instruments: Tuple[str, ...] = field(default_factory=tuple)
    confidence: float = 0.5
    is_live: bool = True


def _has_instruments(analysis: CompanionAnalysis) -> bool:
    instruments = analysis.instruments.instruments
    return bool(instruments) and instruments[0] != "unknown"


def build_utterance_prompt(
    transcript: str,
    companion: Optional[CompanionAnalysis] = None,
    classification: Optional[ContentClassification] = None,
) -> Optional[UtterancePrompt]:
    """
    Build the user prompt for a finished utterance.

    Uses the companion analysis when one is available and falls back to
    the plain content classification otherwise.

    Returns:
        UtterancePrompt, or None when there is no transcript and no
        music to talk about.
    """
    text = transcript.strip()

    if companion is not None:
        voice = companion.voice
        instruments = companion.instruments.instruments

        if voice.is_voice_detected and text:
            voice_type = "singing" if voice.is_singing else "speaking"
            display = f'{voice_type}: "{text}"'
            if _has_instruments(companion):
                display += f" + {', '.join(instruments)}"
                prompt = (
                    f'I\'m {voice_type} "{text}" while playing {" and ".join(instruments)}. '
                    f"Here's the musical analysis:\n{format_for_ai(companion)}\n\n"
                    "As my music companion, what do you think? Give me specific feedback "
                    "about my performance and any suggestions for improvement."
                )
            else:
                pitch_note = (
                    f"My pitch is {voice.pitch:.1f}Hz with "
                    f"{voice.pitch_stability * 100:.0f}% stability. "
                    if voice.is_singing
                    else ""
                )
                prompt = f'I\'m {voice_type}: "{text}". {pitch_note}What do you think?'
            return UtterancePrompt(prompt=prompt, display_text=display)

        if _has_instruments(companion):
            return UtterancePrompt(
                prompt=(
                    f"I'm playing {' and '.join(instruments)}. "
                    f"Here's the musical analysis:\n{format_for_ai(companion)}\n\n"
                    "As my music companion, what do you think about this performance? "
                    "Any suggestions?"
                ),
                display_text=f"Playing: {', '.join(instruments)}",
            )

        if text:
            return UtterancePrompt(prompt=text, display_text=text)
        return UtterancePrompt(
            prompt="I just played something. What do you think?",
            display_text="Audio detected",
        )

    if (
        classification is not None
        and classification.is_music_detected
        and classification.confidence > MUSIC_PROMPT_CONFIDENCE
    ):
        description = describe_content(classification)
        if text:
            return UtterancePrompt(
                prompt=(
                    f"I'm {text} while playing music. {description} "
                    "What do you think about this combination?"
                ),
                display_text=f'Voice + Music: "{text}"',
            )
        return UtterancePrompt(
            prompt=(
                f"I'm playing some music. {description} What do you think about "
                "this music? Keep it short and conversational."
            ),
            display_text="Music detected",
        )

    if text:
        return UtterancePrompt(prompt=text, display_text=text)
    return None


def describe_content(classification: ContentClassification) -> str:
    """Natural-language description of a content classification."""
    if classification.content_type == "voice":
        if classification.is_singing:
            return "Vocal/singing detected in the audio input."
        return "Voice/speech detected in the audio input."

    parts: List[str] = []

    if classification.genre and classification.genre != "unknown":
        parts.append(f"It sounds like {classification.genre} music")
    else:
        parts.append("It's some kind of instrumental music")

    mood = classification.mood
    if mood == "energetic":
        parts.append("with an energetic, upbeat feel")
    elif mood == "calm":
        parts.append("with a calm, peaceful vibe")
    elif mood:
        parts.append(f"with a {mood} mood")

    main = [i for i in classification.instruments if i in ("guitar", "piano", "vocals", "strings")]
    if main:
        parts.append(f"featuring {main[0]}")

    tempo = classification.tempo
    if tempo > 200:
        parts.append("at a very fast pace")
    elif tempo > 140:
        parts.append("at a fast tempo")
    elif tempo > 100:
        parts.append("at a moderate pace")
    else:
        parts.append("at a slower tempo")

    parts.append(f"in the key of {classification.key}")
    return " ".join(parts) + "."


# ---------------------------------------------------------------------------
# Creative suggestions
# ---------------------------------------------------------------------------


def context_from_classification(
    classification: ContentClassification, is_live: bool = True
) -> CreativeContext:
    return CreativeContext(
        tempo=classification.tempo or DEFAULT_TEMPO,
        key=classification.key or "C",
        genre=classification.genre or "unknown",
        mood=classification.mood or "neutral",
        instruments=tuple(i for i in classification.instruments if i != "unknown"),
        confidence=classification.confidence,
        is_live=is_live,
    )


def choose_creative_mode(context: CreativeContext) -> str:
    """create without instruments or confidence; experiment when unlabelled."""
    if not context.instruments or context.confidence < 0.3:
        return "create"
    if context.genre == "unknown" or context.mood == "neutral":
        return "experiment"
    return "enhance"


def build_creative_prompt(context: CreativeContext, mode: Optional[str] = None) -> str:
    """
    Build a creative-suggestion prompt asking for a JSON reply.

    Args:
        context: Musical context
        mode: enhance, create or experiment; chosen from the context when None

    Raises:
        ValueError: If mode is not a known collaboration mode
    """
    mode = mode or choose_creative_mode(context)
    if mode not in CREATIVE_MODES:
        raise ValueError(f"Unknown creative mode: {mode}")

    tempo, key, genre, mood = context.tempo, context.key, context.genre, context.mood

    if mode == "enhance":
        live = "I'm playing live" if context.is_live else "I'm working on a track"
        instruments = ", ".join(context.instruments) or "various instruments"
        return (
            f"You are my musical partner. {live} in {key} at {tempo} BPM "
            f"({genre}, {mood} mood) with {instruments}.\n\n"
            "Give me ONE specific, actionable suggestion to enhance this right now. "
            "Keep it brief and focused.\n\n"
            "Format as JSON:\n"
            + _json_template(
                "harmony|melody|rhythm", "instrument name", "technique",
                "what to do", "why it helps", "brief thoughts", "one action", "enhance",
            )
            + "\n\nBe concise and actionable!"
        )

    if mode == "create":
        return (
            f"You are a {genre} music producer. I'm building a track: {tempo} BPM, "
            f"{key} key, {mood} mood.\n\n"
            f"Give me ONE essential element to add next for authentic {genre} sound.\n\n"
            "JSON format:\n"
            + _json_template(
                "drums|bass|harmony", "instrument", f"{genre} technique",
                "brief guide", f"why it fits {genre}", "brief assessment", "one step", "create",
            )
            + "\n\nKeep it focused and genre-authentic."
        )

    return (
        f"Virtual bandmate here! We're jamming in {key} at {tempo} BPM with "
        f"{mood} {genre} vibes.\n\n"
        "Give me ONE bold experimental idea to try right now:\n\n"
        + _json_template(
            "experiment", "element", "approach", "what to try",
            "why it's interesting", "jam thoughts", "try this", "experiment",
        )
        + "\n\nBe bold but brief!"
    )


def build_simple_prompt(is_live: bool = True) -> str:
    action = "I'm playing" if is_live else "I'm working on"
    return (
        f"{action} music right now. Give me one brief musical suggestion to "
        "improve what I'm doing. Keep it short and actionable."
    )


def _json_template(
    kind: str,
    instrument: str,
    style: str,
    description: str,
    reasoning: str,
    feedback: str,
    next_step: str,
    mode: str,
) -> str:
    template = {
        "suggestions": [
            {
                "type": kind,
                "instrument": instrument,
                "style": style,
                "description": description,
                "reasoning": reasoning,
            }
        ],
        "overall_feedback": feedback,
        "next_steps": [next_step],
        "collaboration_mode": mode,
    }
    return json.dumps(template, indent=2)


def parse_json_response(raw: str) -> Dict[str, Any]:
    """Parse a reply that should be JSON.

    Handles markdown code fences around the object.

    Returns:
        Parsed dict, or {"_parse_error": True, "_raw_response": raw}.
    """
    cleaned = raw.strip()
    if cleaned.startswith("```"):
        lines = cleaned.split("\n")
        if lines[0].startswith("```"):
            lines = lines[1:]
        if lines and lines[-1].strip() == "```":
            lines = lines[:-1]
        cleaned = "\n".join(lines)

    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError:
        logger.warning("Failed to parse creative JSON response, preserving raw text")
        return {"_parse_error": True, "_raw_response": raw}
    if not isinstance(parsed, dict):
        return {"_parse_error": True, "_raw_response": raw}
    return parsed


def _as_list(value: Any) -> List[Any]:
    if isinstance(value, list):
        return value
    if value:
        return [value]
    return []


def format_creative_response(raw: str) -> str:
    """Render a JSON creative reply as chat text; raw text if it isn't JSON."""
    parsed = parse_json_response(raw)
    if parsed.get("_parse_error"):
        return raw

    lines = ["**Creative Suggestions:**", ""]
    for index, suggestion in enumerate(_as_list(parsed.get("suggestions")), start=1):
        if not isinstance(suggestion, dict):
            lines.append(f"**{index}.** {suggestion}")
            lines.append("")
            continue
        lines.append(
            f"**{index}. {suggestion.get('instrument', '')} ({suggestion.get('type', '')})**"
        )
        lines.append(f"Style: {suggestion.get('style', '')}")
        lines.append(str(suggestion.get("description", "")))
        lines.append(f"*{suggestion.get('reasoning', '')}*")
        lines.append("")

    if parsed.get("overall_feedback"):
        lines.append(f"**Overall:** {parsed['overall_feedback']}")
        lines.append("")

    next_steps = _as_list(parsed.get("next_steps"))
    if next_steps:
        lines.append("**Next Steps:**")
        lines.extend(f"{i}. {step}" for i, step in enumerate(next_steps, start=1))

    return "\n".join(lines).rstrip() + "\n"
