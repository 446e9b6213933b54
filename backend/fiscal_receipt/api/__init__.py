"""API package.

This exposes router modules to simplify test imports like:
	from fiscal_receipt.api.routes.fiscal_receipt import router
"""

__all__ = [
	"routes",
]
