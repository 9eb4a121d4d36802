"""
Proxy Service package for the Exoplanet Explorer.

The proxy fronts every browser call to a third-party service:
- Archive: NASA Exoplanet Archive TAP queries, cached per query string
- Predict: candidate parameters forwarded to the classification model
- Chat: prompts forwarded to the language model, cached per prompt

Structure:
- app.main: FastAPI app, routes, and wiring.
- app.adapters: HTTP clients for the upstreams.
- app.caching: In-process TTL response cache.
- app.domain: Proxy handlers, one per upstream.
"""
