"""Application package for the course quiz backend.

This package exposes the grading core, the service, repository and model
modules used by the FastAPI application. Individual modules contain the
concrete implementations and documentation; `grading` and `analytics`
are pure and can be used without a database.
"""
