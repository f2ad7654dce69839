"""
Read-side HTTP API (FastAPI)

All routes live under /api/v0; the app is built by create_app().
"""
from .app import create_app

__all__ = ['create_app']
