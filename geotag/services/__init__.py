# Services package init
"""
GeoTag Backend - Services Layer
=================================

Business logic between the routes (HTTP) and the database (persistence).

Service Inventory:
    - CredentialService: registration, login checks, profile updates
    - SessionAuthority:  JWT issue/verify
    - TokenCache:        optional TTL cache of verified tokens
    - AccessGate:        bearer header → authenticated User
    - EntryService:      entry create/list/get/update/delete
    - FileService:       photo upload validation, storage, cleanup

Services take the AsyncSession as an argument and hold no per-request
state, so routes can share module-level instances.
"""
