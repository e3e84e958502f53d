"""HTTP API — FastAPI routes and server."""
