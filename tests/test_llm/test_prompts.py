"""Tests for prompt construction and creative reply formatting."""

import pytest

from wexly.core.models import (
    CompanionAnalysis,
    InstrumentAnalysis,
    OverallAnalysis,
    VoiceAnalysis,
)
from wexly.llm.prompts import (
    SYSTEM_PROMPT,
    CreativeContext,
    build_creative_prompt,
    build_simple_prompt,
    build_utterance_prompt,
    choose_creative_mode,
    context_from_classification,
    describe_content,
    format_creative_response,
    parse_json_response,
)


def _companion(voice=False, singing=False, instruments=("guitar",)):
    return CompanionAnalysis(
        voice=VoiceAnalysis(
            is_voice_detected=voice,
            is_singing=singing,
            confidence=0.8 if voice else 0.0,
            pitch=261.6 if voice else 0.0,
            pitch_stability=0.85 if singing else 0.0,
            vocal_range=(250.0, 270.0),
            in_key=True,
            harmony="consonant",
        ),
        instruments=InstrumentAnalysis(
            instruments=instruments,
            confidence=0.6,
            chords=("Cmaj",),
            chord_progression=("Cmaj",),
            key="C",
            tempo=120,
        ),
        overall=OverallAnalysis(
            music_type="mixed" if voice else "instrumental",
            quality="good",
            suggestions=("Keep it up",),
        ),
    )


# ---------------------------------------------------------------------------
# Utterance prompts
# ---------------------------------------------------------------------------


class TestUtterancePromptWithCompanion:
    def test_singing_with_instruments(self):
        prompt = build_utterance_prompt("la la", _companion(voice=True, singing=True))

        assert prompt.display_text == 'singing: "la la" + guitar'
        assert prompt.prompt.startswith('I\'m singing "la la" while playing guitar.')
        assert "Musical Analysis:" in prompt.prompt

    def test_singing_without_instruments_mentions_pitch(self):
        companion = _companion(voice=True, singing=True, instruments=("unknown",))
        prompt = build_utterance_prompt("la la", companion)

        assert prompt.display_text == 'singing: "la la"'
        assert "My pitch is 261.6Hz with 85% stability." in prompt.prompt

    def test_speaking_without_instruments(self):
        companion = _companion(voice=True, instruments=("unknown",))
        prompt = build_utterance_prompt("hello", companion)

        assert prompt.prompt == 'I\'m speaking: "hello". What do you think?'

    def test_instruments_only(self):
        prompt = build_utterance_prompt("", _companion(instruments=("guitar", "piano")))

        assert prompt.display_text == "Playing: guitar, piano"
        assert prompt.prompt.startswith("I'm playing guitar and piano.")

    def test_transcript_without_detected_voice(self):
        prompt = build_utterance_prompt("hi", _companion(instruments=("unknown",)))
        assert (prompt.prompt, prompt.display_text) == ("hi", "hi")

    def test_nothing_detected(self):
        prompt = build_utterance_prompt("  ", _companion(instruments=("unknown",)))
        assert prompt.display_text == "Audio detected"


class TestUtterancePromptWithClassification:
    def test_voice_plus_music(self, make_classification):
        prompt = build_utterance_prompt("hello there", classification=make_classification())

        assert prompt.display_text == 'Voice + Music: "hello there"'
        assert "It sounds like pop music" in prompt.prompt

    def test_music_only(self, make_classification):
        prompt = build_utterance_prompt("", classification=make_classification())
        assert prompt.display_text == "Music detected"

    def test_low_confidence_music_ignored(self, make_classification):
        weak = make_classification(confidence=0.2, music_confidence=0.2)

        assert build_utterance_prompt("", classification=weak) is None
        assert build_utterance_prompt("hey", classification=weak).prompt == "hey"

    def test_no_context(self):
        assert build_utterance_prompt("") is None
        assert build_utterance_prompt("hey").display_text == "hey"


class TestDescribeContent:
    def test_music_description(self, make_classification):
        text = describe_content(make_classification(mood="energetic", tempo=150))
        assert text == (
            "It sounds like pop music with an energetic, upbeat feel featuring guitar "
            "at a fast tempo in the key of C."
        )

    def test_unknown_genre_and_slow(self, make_classification):
        text = describe_content(make_classification(genre="unknown", mood="calm", tempo=90, instruments=("drums",)))
        assert text == (
            "It's some kind of instrumental music with a calm, peaceful vibe "
            "at a slower tempo in the key of C."
        )

    def test_voice(self, make_classification):
        voice = make_classification(content_type="voice", is_voice=True, is_singing=True, voice_confidence=0.8)
        assert describe_content(voice) == "Vocal/singing detected in the audio input."


# ---------------------------------------------------------------------------
# Creative prompts
# ---------------------------------------------------------------------------


class TestCreativeMode:
    def test_create_without_instruments(self):
        assert choose_creative_mode(CreativeContext(genre="rock", mood="happy")) == "create"

    def test_create_when_unsure(self):
        context = CreativeContext(instruments=("guitar",), confidence=0.2, genre="rock", mood="happy")
        assert choose_creative_mode(context) == "create"

    def test_experiment_when_unlabelled(self):
        assert choose_creative_mode(CreativeContext(instruments=("guitar",))) == "experiment"

    def test_enhance(self):
        context = CreativeContext(instruments=("guitar",), genre="rock", mood="happy")
        assert choose_creative_mode(context) == "enhance"


class TestCreativePrompt:
    def test_context_from_classification(self, make_classification):
        context = context_from_classification(
            make_classification(instruments=("guitar", "unknown")), is_live=False
        )
        assert context.instruments == ("guitar",)
        assert context.tempo == 120
        assert context.is_live is False

    def test_enhance_prompt(self):
        context = CreativeContext(key="G", tempo=90, genre="folk", mood="calm", instruments=("guitar",))
        prompt = build_creative_prompt(context, "enhance")

        assert prompt.startswith("You are my musical partner. I'm playing live in G at 90 BPM")
        assert '"collaboration_mode": "enhance"' in prompt

    def test_create_prompt_names_genre(self):
        prompt = build_creative_prompt(CreativeContext(genre="funk"), "create")
        assert prompt.startswith("You are a funk music producer.")

    def test_mode_chosen_when_missing(self):
        prompt = build_creative_prompt(CreativeContext())
        assert '"collaboration_mode": "create"' in prompt

    def test_unknown_mode(self):
        with pytest.raises(ValueError, match="remix"):
            build_creative_prompt(CreativeContext(), "remix")

    def test_simple_prompt(self):
        assert build_simple_prompt(is_live=False).startswith("I'm working on music right now.")

    def test_system_prompt_lists_emotions(self):
        assert "[AVATAR: <emotion>]" in SYSTEM_PROMPT
        assert "celebrating" in SYSTEM_PROMPT


# ---------------------------------------------------------------------------
# Creative replies
# ---------------------------------------------------------------------------


class TestCreativeResponse:
    def test_parse_plain_json(self):
        assert parse_json_response('{"overall_feedback": "ok"}') == {"overall_feedback": "ok"}

    def test_parse_fenced_json(self):
        raw = '```json\n{"next_steps": ["a"]}\n```'
        assert parse_json_response(raw) == {"next_steps": ["a"]}

    def test_parse_error_keeps_raw(self):
        parsed = parse_json_response("not json")
        assert parsed["_parse_error"] is True
        assert parsed["_raw_response"] == "not json"

    def test_non_object_is_error(self):
        assert parse_json_response("[1, 2]")["_parse_error"] is True

    def test_format(self):
        raw = (
            '{"suggestions": [{"type": "rhythm", "instrument": "drums", "style": "shuffle",'
            ' "description": "Swing the hats", "reasoning": "Adds bounce"}],'
            ' "overall_feedback": "Nice", "next_steps": ["Record a take"]}'
        )
        assert format_creative_response(raw) == (
            "**Creative Suggestions:**\n\n"
            "**1. drums (rhythm)**\n"
            "Style: shuffle\n"
            "Swing the hats\n"
            "*Adds bounce*\n\n"
            "**Overall:** Nice\n\n"
            "**Next Steps:**\n"
            "1. Record a take\n"
        )

    def test_format_falls_back_to_raw(self):
        assert format_creative_response("Just play louder.") == "Just play louder."

    def test_format_plain_string_suggestions(self):
        raw = '{"suggestions": ["add reverb", "double the chorus"], "next_steps": "Record a take"}'
        assert format_creative_response(raw) == (
            "**Creative Suggestions:**\n\n"
            "**1.** add reverb\n\n"
            "**2.** double the chorus\n\n"
            "**Next Steps:**\n"
            "1. Record a take\n"
        )

    def test_format_ignores_non_list_suggestions(self):
        assert format_creative_response('{"suggestions": null, "overall_feedback": "Nice"}') == (
            "**Creative Suggestions:**\n\n**Overall:** Nice\n"
        )
