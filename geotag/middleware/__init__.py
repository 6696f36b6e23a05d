# Middleware package init
"""
GeoTag Backend - Middleware Package
=====================================

Request → [Rate Limit] → [Request ID] → [Logging] → [GZip] → [CORS] → route

Rate limiting runs first so abusive clients are turned away before any
work; the request id must exist before the access log line is written.
Responses pass back through the chain in reverse order.
"""
