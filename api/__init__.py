"""
FastAPI RESTful API for the Bookshelf service.

This module provides a REST API for:
- User registration and login with bearer tokens
- Saved book management with idempotent save and remove
- Client cache reconciliation against the server list
- Catalog search proxy
"""
