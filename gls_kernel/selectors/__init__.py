"""Read-only selectors over kernel tables."""
