"""entres - entity resolution for extracted knowledge."""

__version__ = "0.1.0"
