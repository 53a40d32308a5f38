"""In-process admin client: optimistic projection plus the orchestrator that drives it"""

from .projection import PendingMutation, Projection
from .session import AdminSession

__all__ = ["AdminSession", "PendingMutation", "Projection"]
