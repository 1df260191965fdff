"""
Backend package for the Robinhood Army service.

This package provides a FastAPI application over user-scoped record,
object storage and change feed abstractions, plus the privileged procedures
and the educational content generator.
"""
