"""API package.

This exposes router modules to simplify test imports like:
	from invoice_api.api.routes.invoices import router
"""

__all__ = [
	"routes",
]
