"""API routers for Task & Tag Service."""
