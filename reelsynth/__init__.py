"""ReelSynth: LLM-powered movie and TV recommendation synthesis."""

__version__ = "0.1.0"
