"""Shared helpers: dates, clock and display formatting."""
