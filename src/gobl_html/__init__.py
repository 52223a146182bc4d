"""
GOBL HTML Service package.

This module provides a FastAPI application that renders GOBL envelopes posted
to `/` as HTML and returns them converted to PDF, with the original JSON
embedded as an attachment.
"""

__all__ = ["__version__"]

__version__ = "0.1.0"
