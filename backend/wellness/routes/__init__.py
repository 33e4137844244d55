# backend/wellness/routes/__init__.py
"""FastAPI routers. Handlers stay thin: authenticate, validate, delegate."""
