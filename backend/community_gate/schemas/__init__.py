# community_gate/schemas/__init__.py
"""
Schema module initialization.
Exports the persisted records and API payload models.
"""
from .base import *
from .auth import *
from .user import *
from .community import *
from .access_log import *
