"""
GeoTag Backend - Application Package
======================================

Server side of a geotagged photo journal: users register, sign in, and
keep a private log of photos pinned to latitude/longitude.

Layering:

    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │   Services (Credential Store,       │  ← validation, ownership,
    │   Session Authority, Access Gate,   │    token issue/verify
    │   Entry Store, File storage)        │
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │        Database (Persistence)       │  ← Async SQLAlchemy sessions
    └─────────────────────────────────────┘

Services never see HTTP; routes never touch the ORM directly.
"""

__version__ = "1.0.0"
