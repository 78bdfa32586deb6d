"""Realtime operations API."""
