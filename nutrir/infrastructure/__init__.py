"""Infrastructure layer: configuration."""
