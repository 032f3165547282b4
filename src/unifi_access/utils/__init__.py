"""Utility helpers for the Unifi Access client."""
