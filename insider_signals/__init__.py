"""Insider Signal Scoring Engine.

Ranks insider filings (SEDI-style transaction records) by how much they look like
informed buying:
- All scoring is deterministic and side-effect free.
- Market data is optional; missing context degrades scoring, never fails it.

Core concepts:
- Atomic unit is a *signal* per (security, insider) pair.
- Open-market buys of common shares are the key signal; grants and plan buys are not.
"""

__all__ = ["__version__"]

__version__ = "0.1.0"
