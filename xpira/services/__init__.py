"""Dialogue services: sessions, effects and tier strategies."""
