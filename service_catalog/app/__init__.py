"""
Catalog Service package for the Course Catalog.

This package serves course records from PostgreSQL with a cache-aside read
path in front of it. It provides:

- app.main: API surface for course CRUD and health.
- app.repository: Cache-aside repository and its invalidate-on-write policy.
- app.cache: Cache layer capability, Redis/in-memory/null backends, key and
  serialization policy.
- app.persistence: Record store capability and its PostgreSQL implementation.

Guidelines:
- The service is stateless; rely on external cache/DB.
- The store is the source of truth; the cache may be lost at any time.
"""
