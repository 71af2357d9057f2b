"""HTTP API — FastAPI app and routers."""
