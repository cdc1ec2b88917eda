"""chatlens: parse chat transcripts and summarize them with an LLM."""

__version__ = "0.1.0"
