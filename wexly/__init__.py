"""
Wexly - real-time music companion core

Continuous audio analysis (pitch, content, musical context), a
voice-activity gate that cuts utterances for transcription, and a
conversation session that talks about what it hears.
"""

__version__ = "1.0.0"
