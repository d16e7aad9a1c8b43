"""Directory service access."""
