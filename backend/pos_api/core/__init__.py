"""Application wiring: lifespan, CORS and request dependencies."""
