"""auth/ -- Authentication and authorization package for the Lost & Found service.

Credential Store (store.py), Authorization Policy (policy.py), Session
Manager (sessions.py) and Request Gate (dependencies.py).

Layer rule: auth/ imports only stdlib, third-party libraries and core/.
It does NOT import from api/ or items/.
api/ imports from auth/, not the other way around.
"""
