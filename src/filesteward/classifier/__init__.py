"""Classifier component for LLM-backed file classification."""

from .classifier import (
    BaseClassifier,
    ClassificationContext,
    ClassifierResult,
    NullClassifier,
    OllamaClassifier,
    OllamaClient,
)

__all__ = [
    "BaseClassifier",
    "ClassificationContext",
    "ClassifierResult",
    "NullClassifier",
    "OllamaClassifier",
    "OllamaClient",
]
