"""Blueprint packages. Each exposes its Blueprint object for the app factory."""
