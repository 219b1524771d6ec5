"""Command-line interface for wiki-explorer."""
