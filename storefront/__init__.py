"""Multi-tenant e-commerce storefront and admin API."""

__version__ = "1.0.0"
