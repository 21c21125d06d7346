"""
Built-in handlers.

    from kurt.handlers import serve_static

    kurt.routes.register("GET", "/static/*path", serve_static("public", "path"))
"""

from .static import StaticFileHandler, serve_static

__all__ = ["StaticFileHandler", "serve_static"]
