"""auth/ -- Authentication and authorization package for AuthGate.

Layer rule: auth/ imports only stdlib + third-party libraries.
It does NOT import from api/, catalog/, or core/.
api/ imports from auth/, not the other way around.
"""
