"""
Inference backends for yolo_detector.

Backends are kept in a separate module so core functionality (pre/post-processing)
stays lightweight and can be used without installing inference runtimes. Each
runtime is imported lazily by its own backend module.
"""

from __future__ import annotations

from .base import InferenceBackend

__all__ = ["InferenceBackend"]
