"""
Per-tick analyzers: pitch tracking, voice activity, content
classification and the companion analysis built on top of them.
"""

from wexly.analyzers.pitch import PitchTracker
from wexly.analyzers.activity import ActivityClassifier, ActivityState
from wexly.analyzers.content import ContentClassifier
from wexly.analyzers.companion import CompanionAnalyzer

__all__ = [
    "PitchTracker",
    "ActivityClassifier",
    "ActivityState",
    "ContentClassifier",
    "CompanionAnalyzer",
]
