"""
Parallax - conflict intelligence and mediated conversation

Annotates each message of a two-person conversation with multi-lens
conflict analysis and conducts the session from introductions to goals
to an open, timed conversation with mediator interventions.

Usage:
    from parallax import Conductor, CompletionClient, InMemoryRecordStore, MediationService

    store = InMemoryRecordStore()
    backend = CompletionClient()
    conductor = Conductor(store, backend)
    mediation = MediationService(store, backend)
"""

from .services.analysis_parser import Analysis, parse_analysis
from .services.completion import CompletionClient
from .services.conductor import Conductor, ConductorResult
from .services.lens_registry import get_active_lenses, resolve_context_mode
from .services.mediation import MediationService
from .services.prompt_composer import SessionContext, build_system_prompt, get_max_tokens
from .services.record_store import InMemoryRecordStore, JsonRecordStore, Session
from .services.turn_timer import TurnTimer

__version__ = "0.4.0"
__all__ = [
    "Analysis",
    "CompletionClient",
    "Conductor",
    "ConductorResult",
    "InMemoryRecordStore",
    "JsonRecordStore",
    "MediationService",
    "Session",
    "SessionContext",
    "TurnTimer",
    "build_system_prompt",
    "get_active_lenses",
    "get_max_tokens",
    "parse_analysis",
    "resolve_context_mode",
]
