"""Domain layer - playback business logic."""
