"""Quality-gated scene generation and frame-accurate timeline composition."""

__version__ = "0.1.0"
