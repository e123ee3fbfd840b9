"""External services used by kellybot."""
