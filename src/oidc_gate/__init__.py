"""Google OpenID Connect login gate for Starlette applications."""

__version__ = "0.1.0"
