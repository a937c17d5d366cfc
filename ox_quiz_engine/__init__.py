"""OX quiz data and statistics engine.

Photographed study notes become true/false quiz sets. Everything is kept in a
single JSON document holding the sets and every recorded answer. On top of it
sit the repository (edits with cascading deletes), per-question accuracy
statistics and shuffled practice selection. The CLI in cli.py is the only UI.
"""

from __future__ import annotations

__all__ = ["__version__"]

__version__ = "0.1.0"
