"""Orchestrator package - drives upload sessions."""
from .core import UploadOrchestrator

__all__ = ["UploadOrchestrator"]
