"""shogun - file-based coordination for Director, Captain and Player agents."""

__version__ = "0.1.0"
