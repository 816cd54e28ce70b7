"""
Natours API — Application Package
==================================

Entry layer of the Natours HTTP API: the request pipeline every connection
passes through, the routing dispatcher, and the single place where unmatched
routes and failures become responses.

    ┌─────────────────────────────────────┐
    │   Pipeline stages (middleware/)     │  ← cross-cutting, every request
    ├─────────────────────────────────────┤
    │   Routing dispatcher (routing.py)   │  ← prefix → resource router
    ├─────────────────────────────────────┤
    │   Resource routers (collaborators)  │  ← business logic, not in here
    └─────────────────────────────────────┘
"""

__version__ = "1.0.0"
