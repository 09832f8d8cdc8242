"""psh: one prompt in front of many local and remote shells."""

__version__ = "0.1.0"
