"""Task manager backend.

This package exposes the service, repository and model modules used by
the FastAPI application in `taskmanager.main`. Individual modules
contain the concrete implementations and documentation.
"""
