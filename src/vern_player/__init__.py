"""VERN Player - playback queue engine for the VERN music review network."""

__version__ = "0.1.0"
