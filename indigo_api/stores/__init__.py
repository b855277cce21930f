"""Data stores for persistence, caching and files.

Stores handle:
- PostgreSQL: DB session, ORM operations
- Redis: caching, locks, TTL policies
- Object storage: hosted bucket API or local fallback directory

No business logic in stores - that belongs in services.
"""
