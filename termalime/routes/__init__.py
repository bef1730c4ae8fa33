"""
API Routes
"""

from .assistant import router as assistant_router
from .terminal import router as terminal_router

__all__ = ["assistant_router", "terminal_router"]
