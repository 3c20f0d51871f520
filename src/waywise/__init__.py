"""Waywise trip planning backend."""
