"""
Version helpers for zkv-attest.
We keep a static __version__ (PEP 440).
"""

from __future__ import annotations

# Bump this when publishing
__version__ = "0.1.0"

USER_AGENT = f"zkv-attest-python/{__version__}"

__all__ = ["__version__", "USER_AGENT"]
