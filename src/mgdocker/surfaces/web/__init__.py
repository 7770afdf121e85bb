from .app import create_app
from .app_state import AppContext, apply_app_context, build_app_context

__all__ = ["AppContext", "apply_app_context", "build_app_context", "create_app"]
