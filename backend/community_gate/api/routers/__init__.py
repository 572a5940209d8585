# community_gate/api/routers/__init__.py
