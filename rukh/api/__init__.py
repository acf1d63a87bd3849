"""
API module - FastAPI routes and HTTP handling.

This module handles:
- Request validation and parsing
- Response formatting
- Error handling
- Route definitions

Import the application from rukh.api.main (`app` or `create_app`).
"""
