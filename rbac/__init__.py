"""rbac/ -- Role/permission graph and user directory for Gridgate.

Layer rule: rbac/ imports from core/ and third-party libraries only.
It does NOT import from api/ or auth/. auth/ and api/ import from rbac/,
not the other way around.
"""
