"""
NoteDrop Backend — Application Package Initializer
===================================================

What: Marks the `notedrop` directory as a Python package.
Why:  Enables module imports like `from notedrop.config import settings`.
Who:  Used implicitly by Python's import system and explicitly by pytest and uvicorn.

Architecture Note:
    The backend follows the same layered shape throughout:

    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │      Note Store (orchestrator)      │  ← load → append → persist
    ├─────────────────────────────────────┤
    │  Codec · Transformer · Visibility   │  ← pure-ish building blocks
    ├─────────────────────────────────────┤
    │     Document Store (GitHub file)    │  ← revision-token persistence
    └─────────────────────────────────────┘

    There is no database. The whole note collection lives in one JSON file
    in a Git repository, and every request reloads it.
"""

__version__ = "1.0.0"
