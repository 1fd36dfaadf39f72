"""
Cacher Service package.

Serves a TTL'd key/value cache over HTTP. Every read and write is a
single command against the shared store, issued through the bounded
connection pool in ``shared.pool``.

- app.main: FastAPI app with the /get and /set endpoints
- app.cache: store-backed cache operations
"""
