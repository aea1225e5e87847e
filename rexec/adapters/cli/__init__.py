"""
Command line interface (typer)
"""
from .app import app, run

__all__ = ["app", "run"]
