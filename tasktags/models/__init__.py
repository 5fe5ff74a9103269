"""Database models for Task & Tag Service."""
