"""iclean - find large files, check disk usage and free up space safely."""

__version__ = "0.1.0"
