# Services package init
"""
PetServices Backend — Services Layer
=====================================

What:  Business logic between the routes (HTTP) and the database.
How:   Services are plain classes constructed once by `create_app()` and
       stored on `app.state`; routes reach them through the accessors in
       `petservices.dependencies`. Each call receives the request's
       AsyncSession; services flush, `get_db_session` commits.

Service Inventory:
    - AuthService: bcrypt password hashing, registration, login, JWT tokens
    - CatalogService: listing CRUD and search, image lifecycle
    - FavoritesService: per-user bookmarks with ownership checks
    - UploadManager: image validation, storage keys, retried uploads
    - ScrapeService: outbound lead-scraping webhook
    - ObjectStore (abstract): LocalObjectStore, SupabaseObjectStore
    - RetryPolicy: bounded retry with linear backoff (tenacity)
"""
