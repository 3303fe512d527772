# Middleware package init
"""
NoteDrop Backend — Middleware Package
======================================

Middleware Chain (order matters!):
    Request → [Rate Limit] → [Request ID] → [Logging] → [CORS] → Route Handler

    1. Rate Limit FIRST: reject excess submissions before any remote call
    2. Request ID: correlation id for every log line of the request
    3. Logging: access line with status and duration
    4. CORS: FastAPI's CORSMiddleware (handles preflight)
"""
