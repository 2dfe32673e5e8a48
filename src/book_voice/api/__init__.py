"""
FastAPI REST API Layer for book-voice.

    - routes.py: Relay endpoints and app-level exception handlers
    - schemas.py: Request/response Pydantic models
    - dependencies.py: FastAPI dependency injection
"""
