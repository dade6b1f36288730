"""
Analyzer base interface for the real-time analysis loop.

Defines the contract shared by the per-tick classifiers using Protocol
(structural subtyping).
"""

import logging
import time
from abc import abstractmethod
from typing import Any, Generic, Protocol, TypeVar

from wexly.core.models import FeatureVector
from wexly.utils.errors import AnalysisError

T = TypeVar('T')


class Analyzer(Protocol[T]):
    """
    Base protocol for per-tick analyzers.

    A class doesn't need to inherit from Analyzer to be accepted by the
    engine - it just needs the name/version properties and analyze().
    """

    @property
    def name(self) -> str:
        """Analyzer name (e.g., 'content', 'companion')."""
        ...

    @property
    def version(self) -> str:
        """Analyzer version for result tracking."""
        ...

    def analyze(self, features: FeatureVector, **context: Any) -> T:
        """
        Analyze one feature vector and return a typed result.

        Raises:
            AnalysisError: If analysis fails
        """
        ...


class BaseAnalyzer(Generic[T]):
    """
    Optional base class providing logging, timing and error wrapping.

    Uses Template Method pattern - analyze() provides the template,
    subclasses implement _analyze_impl().
    """

    def __init__(self, name: str, version: str):
        self._name = name
        self._version = version
        self.logger = logging.getLogger(f"analyzer.{name}")

    @property
    def name(self) -> str:
        """Return analyzer name."""
        return self._name

    @property
    def version(self) -> str:
        """Return analyzer version."""
        return self._version

    def analyze(self, features: FeatureVector, **context: Any) -> T:
        """
        Template method with timing and error handling.

        Runs once per tick, so timing is logged at DEBUG.

        Raises:
            AnalysisError: If analysis fails
        """
        start_time = time.perf_counter()

        try:
            result = self._analyze_impl(features, **context)

            elapsed = time.perf_counter() - start_time
            self.logger.debug(f"Analysis complete in {elapsed * 1000:.2f}ms")

            return result

        except AnalysisError:
            raise

        except Exception as e:
            self.logger.error(f"Analysis failed: {e}")
            raise AnalysisError(
                f"{self.name} analysis failed: {e}",
                analyzer_name=self.name,
                original_error=e
            ) from e

    @abstractmethod
    def _analyze_impl(self, features: FeatureVector, **context: Any) -> T:
        """Subclasses implement the actual analysis logic."""
        raise NotImplementedError
