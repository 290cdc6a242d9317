"""auth/ -- Authentication and authorization package for Gridgate.

Layer rule: auth/ imports from core/, rbac/ and third-party libraries.
It does NOT import from api/. api/ imports from auth/, not the other way around.
"""
