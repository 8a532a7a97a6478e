"""Request observability.

Request IDs and structlog contextvars for logs, plus one persisted metric record
per HTTP request.
"""
