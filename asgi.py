"""
asgi.py -- ASGI entry point for AuthGate.

Process managers and `python main.py serve` point at "asgi:app". Keeping the
import path here means api/main.py can move or be split without touching
deployment config.

Run with:  uvicorn asgi:app --reload
"""

from api.main import app

__all__ = ["app"]
