"""Server module - FastAPI service around the sync coordinator."""
