"""Template loading and parsing into desired resource instances."""
