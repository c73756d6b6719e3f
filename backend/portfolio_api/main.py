# backend/portfolio_api/main.py
"""ASGI entrypoint: `uvicorn portfolio_api.main:app`."""

from .app import create_app

app = create_app()
