"""Pydantic schemas for Task & Tag Service."""
