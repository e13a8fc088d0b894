"""Application package for the Study Board backend.

This package exposes the service, repository and model modules used by
the FastAPI application. Route families live in `studyboard.routers`;
individual modules contain the concrete implementations and documentation.
"""
