"""CinePoster: resilient poster loading and availability scanning."""
