"""Dialtune - telephone IVR bot: AI chat and music on any phone."""

__version__ = "0.1.0"
