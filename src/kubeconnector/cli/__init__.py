# src/kubeconnector/cli/__init__.py
"""
kubeconnector CLI package.

Exposes the top-level Typer `app` for the console entrypoint and tests.
"""

from .main import app

__all__ = ["app"]
