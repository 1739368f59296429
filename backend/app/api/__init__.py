"""API package.

This exposes router modules to simplify test imports like:
	from app.api.routes.reports import router
"""

__all__ = [
	"routes",
]
