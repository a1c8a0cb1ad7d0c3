"""CodeSpecter: repository indexing and AI pull request reviews."""

__version__ = "0.1.0"
