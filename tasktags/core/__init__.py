"""Core modules for Task & Tag Service."""
