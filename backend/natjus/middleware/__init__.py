"""
NatJus Backend — Middleware Package
=====================================

Middleware Chain:
    Request → [Rate Limit] → [Request ID] → [Logging] → [CORS] → Route Handler

Rate limiting runs first so rejected requests cost nothing downstream.
"""
