"""PaperShelf: full-text PDF search and smart groups for a paper library."""

__version__ = "0.1.0"
