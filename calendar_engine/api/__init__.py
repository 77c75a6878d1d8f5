"""
Scheduling engine API module.

Provides FastAPI HTTP endpoints over the engine's library API.
"""

from calendar_engine.api.main import app, run_server

__all__ = ["app", "run_server"]
