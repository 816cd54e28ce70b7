"""
Natours API — Routes Package
=============================

Routers owned by this layer. Resource routers (views, tours, users, reviews,
bookings) are collaborators supplied through ``natours.routing.Collaborators``.

Route Inventory:
    - health.py:   GET  /health              (liveness probe)
    - webhook.py:  POST /webhook-checkout    (raw-body payment webhook)
    - fallback.py: OPTIONS /{path}           (204)
                   *   /{path}               (404, always included last)
"""
