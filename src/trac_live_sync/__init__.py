"""Live publishing of a local Markdown vault to Trac wiki pages."""

__version__ = "0.1.0"
