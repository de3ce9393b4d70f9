"""
HN API proxy service package.

The service fronts the Hacker News origin, flattening items and their
comment trees into denormalized JSON and shielding the origin from
repeated identical requests through a read-through result cache.

Structure:
- app.main: FastAPI app, routes, and middleware wiring.
- app.adapters: the ItemSource contract and its HTTP implementation.
- app.domain: models, the tree fetcher, formatting and the read-through policy.
- app.caching: the ResultCache and its local / Redis backends.
"""
