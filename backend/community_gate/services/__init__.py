# community_gate/services/__init__.py
"""
Background services running alongside the API.
"""
from .sweeper import ExpiredCodeSweeper
