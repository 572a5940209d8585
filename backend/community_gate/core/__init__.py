# community_gate/core/__init__.py
"""
Core application modules.
Contains essential infrastructure components:
- bootstrap: Application initialization and superuser creation
- clock: UTC time helpers
- db: Tortoise ORM configuration and connection management
- debounce: Per (community, player) access-attempt debounce
- ratelimit: Fixed-window rate limiting for page routes
- security: Password hashing and CSRF tokens
"""
