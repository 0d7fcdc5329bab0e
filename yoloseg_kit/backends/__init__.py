"""
Optional inference backends for yoloseg_kit.

Kept separate so post-processing stays usable without an inference runtime installed.
"""

from __future__ import annotations

__all__ = []
