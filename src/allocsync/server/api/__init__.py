"""REST API routes for the allocation server."""
