"""Starlette binding for the OpenID authenticator."""
