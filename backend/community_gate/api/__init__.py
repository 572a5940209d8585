# community_gate/api/__init__.py
"""
HTTP layer: FastAPI dependencies and resource routers.
"""
