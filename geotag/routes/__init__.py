# Routes package init
"""
GeoTag Backend - API Routes Package
=====================================

Route Inventory:
    - auth.py:     /api/auth/register, /login, /profile, /session
    - entries.py:  /api/entries CRUD (bearer token required)
    - uploads.py:  /uploads/{path} (stored photos)
    - health.py:   /health

Routes handle HTTP only (extract input, call a service, set status and
headers). Rules live in the services so they can be tested without HTTP.
"""
