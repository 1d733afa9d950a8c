from .service import ToolRestHandler, create_app, create_router

__all__ = ["ToolRestHandler", "create_app", "create_router"]
