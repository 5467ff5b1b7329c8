# Middleware package init
"""
ClipSync Backend — Middleware Package
======================================

What:  Cross-cutting concerns applied to every request.

Middleware Chain (outermost first):
    Request → [Rate Limit] → [Request ID] → [Logging] → [Security Headers]
            → [GZip] → [CORS] → Route Handler

    1. Rate Limit first: reject abusive clients before any processing
    2. Request ID: correlation id for logs and error bodies
    3. Logging: access line with status and duration, tagged with the id
    4. Security headers: nosniff / frame / referrer policy on every response
    5. GZip + CORS: Starlette's stock middleware

Responses travel the chain in reverse, so the request id header and the
security headers are present on error responses too.
"""
