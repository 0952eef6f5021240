"""trcd: a TCP relay chat daemon."""

__version__ = "0.1.0"
