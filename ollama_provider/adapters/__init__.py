"""
Adapters for the inference backend.

Protocol defines WHAT, implementations define HOW.
"""

from .base import InferenceBackend
from .ollama import OllamaClient

__all__ = ["InferenceBackend", "OllamaClient"]
