"""
Wexly - Main Entry Point

Replays a recorded file through the real-time analysis engine at the
engine's tick rate, printing what the companion hears. With --chat the
utterances cut by the activity gate are transcribed and sent to the
chat collaborator.

Example usage:
    python main.py path/to/take.wav
    python main.py --config config/config.yaml --chat path/to/take.wav
"""

import argparse
import sys
import time
from pathlib import Path

import numpy as np
from dotenv import load_dotenv

from wexly.analyzers.companion import format_for_ai
from wexly.core.engine import create_analysis_engine
from wexly.core.loader import create_audio_loader, iter_chunks
from wexly.core.models import AudioAnalysis
from wexly.utils.config import load_config
from wexly.utils.errors import AudioAnalysisError
from wexly.utils.logging import setup_logging_from_config


class ReplayClock:
    """Clock advanced by the replay loop instead of wall time."""

    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now


def main():
    """Main entry point for replaying audio through the companion."""
    parser = argparse.ArgumentParser(
        description="Replay an audio file through the Wexly music companion"
    )
    parser.add_argument(
        "audio_file",
        type=Path,
        help="Path to audio file to replay"
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to configuration file"
    )
    parser.add_argument(
        "--chat",
        action="store_true",
        help="Send detected utterances to the chat collaborator"
    )
    parser.add_argument(
        "--realtime",
        action="store_true",
        help="Pace the replay at wall-clock speed"
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose output"
    )

    args = parser.parse_args()

    load_dotenv()

    try:
        config = load_config(str(args.config) if args.config else None)
    except AudioAnalysisError as e:
        print(f"Error: {e}")
        sys.exit(1)

    setup_logging_from_config(config, verbose=args.verbose)

    loader = create_audio_loader(config.get('audio', {}))
    try:
        samples, sample_rate = loader.load(args.audio_file)
    except AudioAnalysisError as e:
        print(f"Error: {e}")
        sys.exit(1)

    clock = ReplayClock()
    engine = create_analysis_engine(config, clock=clock)
    session = _create_chat_session(config, engine) if args.chat else None

    print(f"\nReplaying: {args.audio_file.name} ({len(samples) / sample_rate:.1f}s)")
    print("-" * 60)

    ticks = 0
    try:
        for chunk in iter_chunks(samples, sample_rate, engine.interval):
            clock.now += engine.interval
            engine.frame_source.write(chunk)
            analysis = engine.tick()
            ticks += 1
            if analysis is not None and ticks % int(round(1 / engine.interval)) == 0:
                _print_analysis(analysis)
            if args.realtime:
                time.sleep(engine.interval)

        # Let the activity gate close a trailing utterance
        silence = np.zeros(int(sample_rate * engine.interval), dtype=np.float32)
        silence_ticks = int(engine.activity_classifier.silence_timeout / engine.interval) + 2
        for _ in range(silence_ticks):
            clock.now += engine.interval
            engine.frame_source.write(silence)
            engine.tick()

        companion = engine.latest_companion
        if companion is not None:
            print("\n" + "=" * 60)
            print("COMPANION ANALYSIS")
            print("=" * 60)
            print(format_for_ai(companion))

    except KeyboardInterrupt:
        print("\n\nInterrupted by user.")
    finally:
        engine.shutdown()
        if session is not None:
            session.shutdown()
            _print_conversation(session.conversation)


def _create_chat_session(config, engine):
    from wexly.session.conversation import create_session

    session = create_session(config)
    session.attach(engine)
    session.on_notice(lambda text: print(f"  [{text}]"))
    session.on_error(lambda text: print(f"  Error: {text}"))
    session.emotion.on_change(lambda state: print(f"  (wexly is {state.current})"))
    session.start()
    return session


def _print_analysis(analysis: AudioAnalysis) -> None:
    pitch = f"{analysis.pitch:6.1f} Hz" if analysis.pitch else "    --   "
    chords = ", ".join(analysis.chords) or "-"
    print(
        f"t={analysis.timestamp:6.1f}s  pitch {pitch}  vol {analysis.volume:4.2f}  "
        f"key {analysis.key:<2}  tempo {analysis.tempo:3d}  chords {chords}"
    )


def _print_conversation(messages) -> None:
    if not messages:
        return
    print("\n" + "=" * 60)
    print("CONVERSATION")
    print("=" * 60)
    for message in messages:
        speaker = "You" if message.role == "user" else "Wexly"
        print(f"{speaker}: {message.content}")


if __name__ == "__main__":
    main()
