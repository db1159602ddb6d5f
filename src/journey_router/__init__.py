"""Journey route calculation service."""
