"""Live session domain: lifecycle, scoring, validation, presence, ranking.

This package holds the session engine and its pure helpers. HTTP routes
and socket handlers import from here, keeping transport concerns separated
from core game mechanics.
"""

from .engine import EngineSettings, GameDefinition, SessionEngine
from .errors import SessionError
from .store import Actor, SessionStore

__all__ = ['Actor', 'EngineSettings', 'GameDefinition', 'SessionEngine', 'SessionError', 'SessionStore']
