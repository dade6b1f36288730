"""
Utility modules for configuration, logging, and error handling.
"""

from wexly.utils.errors import (
    AudioAnalysisError,
    AudioLoadError,
    AnalysisError,
    FeatureExtractionError,
    ConfigurationError,
    ModelLoadError,
    TranscriptionError,
    ChatCompletionError,
    SessionClosedError,
)
from wexly.utils.logging import get_logger, setup_logging, JSONFormatter
from wexly.utils.config import ConfigManager, load_config, get_default_config

__all__ = [
    "AudioAnalysisError",
    "AudioLoadError",
    "AnalysisError",
    "FeatureExtractionError",
    "ConfigurationError",
    "ModelLoadError",
    "TranscriptionError",
    "ChatCompletionError",
    "SessionClosedError",
    "get_logger",
    "setup_logging",
    "JSONFormatter",
    "ConfigManager",
    "load_config",
    "get_default_config",
]
