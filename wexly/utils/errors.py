"""
Custom exceptions for the Wexly music companion.

This module defines a hierarchy of exceptions for handling the error
conditions of the analysis pipeline and its conversation collaborators.
"""

from typing import Optional, Any


class AudioAnalysisError(Exception):
    """Base exception for all Wexly errors."""

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} (Details: {self.details})"
        return self.message


class AudioLoadError(AudioAnalysisError):
    """Raised when an audio file cannot be loaded for replay."""

    def __init__(self, message: str, file_path: Optional[str] = None):
        super().__init__(message, details={"file_path": file_path})
        self.file_path = file_path


class AnalysisError(AudioAnalysisError):
    """Raised when a per-tick analysis step fails."""

    def __init__(
        self,
        message: str,
        analyzer_name: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(message)
        self.analyzer_name = analyzer_name
        self.original_error = original_error
        self.details = {
            "analyzer_name": analyzer_name,
            "original_error": str(original_error) if original_error else None,
        }


class FeatureExtractionError(AnalysisError):
    """Raised when feature extraction fails."""

    def __init__(self, message: str, feature_name: Optional[str] = None):
        super().__init__(message, analyzer_name="feature_extractor")
        self.feature_name = feature_name
        self.details["feature_name"] = feature_name


class ConfigurationError(AudioAnalysisError):
    """Raised when configuration is invalid or missing."""

    def __init__(self, message: str, config_key: Optional[str] = None):
        super().__init__(message)
        self.config_key = config_key
        self.details = {"config_key": config_key}


class ModelLoadError(AudioAnalysisError):
    """Raised when a model or service client cannot be created."""

    def __init__(self, message: str, model_name: Optional[str] = None):
        super().__init__(message)
        self.model_name = model_name
        self.details = {"model_name": model_name}


class TranscriptionError(AudioAnalysisError):
    """Raised when the speech-to-text collaborator fails."""

    def __init__(
        self,
        message: str,
        backend: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(message)
        self.backend = backend
        self.original_error = original_error
        self.details = {
            "backend": backend,
            "original_error": str(original_error) if original_error else None,
        }


class ChatCompletionError(AudioAnalysisError):
    """Raised when the chat collaborator fails or the stream breaks."""

    def __init__(
        self,
        message: str,
        model_id: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(message)
        self.model_id = model_id
        self.original_error = original_error
        self.details = {
            "model_id": model_id,
            "original_error": str(original_error) if original_error else None,
        }


class SessionClosedError(AudioAnalysisError):
    """Raised when work is submitted to a session that has been shut down."""

    def __init__(self, session_id: str):
        super().__init__(
            f"Session '{session_id}' is closed.",
            details={"session_id": session_id},
        )
        self.session_id = session_id
