"""Auto-apply bot for hh.ru with AI query expansion, filtering and cover letters."""

__version__ = "1.0.0"
