"""memorybank: project intelligence pipeline and memory-bank generator."""

__version__ = "1.0.0"
