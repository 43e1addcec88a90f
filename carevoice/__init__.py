"""CareVoice - conversation backend for an AI voice agent."""

__version__ = "1.0.0"
