"""
Macrobius Tutor adaptive learning core.

This package models learners, their practice and tutoring sessions, and the heuristics
that adapt difficulty and produce recommendations, plus a tutoring state machine that
enriches answers with ancient-to-modern cultural connections.
"""

from .config.loader import load_settings

__all__ = ["load_settings"]
