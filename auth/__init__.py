"""auth/ -- Login and migration protocols plus the session registry.

Layer rule: auth/ imports from core/, accounts/ and analytics/ only.
It does NOT import from api/. api/ imports from auth/, not the other way around.
"""
