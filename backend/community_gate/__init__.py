# community_gate/__init__.py
"""
Community Gate: administration service for communities, their addresses,
residents and time-limited access codes, plus access logs posted by game
servers.
"""
__version__ = "0.1.0"
