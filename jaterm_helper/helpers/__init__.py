"""Building blocks for the helper bootstrap."""
