"""Export a git repository's history as Markdown for LLM ingestion."""

__version__ = "0.1.0"
