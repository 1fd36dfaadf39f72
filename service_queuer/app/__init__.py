"""
Queuer Service package.

Serves a named FIFO work queue over HTTP, backed by a list in the
shared store. The service keeps no queue state of its own; exactly-once
delivery of popped values comes from the store's atomic LPOP.

- app.main: FastAPI app with the /push and /pop endpoints
- app.queue: store-backed queue operations
"""
