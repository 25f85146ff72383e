"""Formula composition and validation engine."""
