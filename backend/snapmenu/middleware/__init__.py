# Middleware package init
"""
SnapMenu Backend — Middleware Package
=======================================

What:  Cross-cutting concerns applied to every request.

Middleware Chain (order matters!):
    Request → [Rate Limit] → [Request ID] → [Logging] → [GZip] → [CORS] → Route Handler

    1. Rate Limit FIRST: reject extraction floods before reading uploads
    2. Request ID: correlation ID for logs and error responses
    3. Logging: method, path, status and duration with the request ID

    The order is reversed for responses, so the request ID header is set
    on every response and logging sees the final status code.
"""
