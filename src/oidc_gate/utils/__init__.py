"""Shared helpers: environment parsing and logging setup."""
