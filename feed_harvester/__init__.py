"""Feed harvester: poll syndication feeds and keep one copy of every item."""

__version__ = "0.1.0"
