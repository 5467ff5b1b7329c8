# Services package init
"""
ClipSync Backend — Services Layer
==================================

What:  Business logic between routes (HTTP) and the database (persistence).
How:   Services are stateless singletons. Each call receives the request's
       AsyncSession and, for clipboard data, the authenticated user id.

Service Inventory:
    - CredentialService: salted/legacy password hashing and verification
    - TokenService:      signed session token issue / verify / refresh
    - timestamp_parser:  client timestamp normalization (module functions)
    - ContentService:    size/type validation, redaction, display helpers
    - SyncService:       item CRUD, single-item upsert, batch sync, listing
    - StatsService:      per-user aggregates
    - AuthService:       accounts, login with legacy upgrade, password changes

Services are also used directly by the `clipsync-admin` CLI, so none of them
depend on FastAPI.
"""
