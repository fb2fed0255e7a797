"""Multi-backend LLM streaming client"""

__version__ = "0.1.0"
