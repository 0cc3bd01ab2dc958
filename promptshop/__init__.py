"""promptshop - storefront and learning platform backend."""

__version__ = "0.1.0"
