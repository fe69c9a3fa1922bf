"""
Shared API
==========

FastAPI middleware and exception handlers.
"""
