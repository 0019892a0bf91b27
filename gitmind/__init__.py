"""gitmind: an AI-assisted git workflow for the terminal."""

__version__ = "0.1.0"
