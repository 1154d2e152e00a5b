"""auth/ -- Credentials, identities and the request gate for the auth service.

Layer rule: auth/ imports only stdlib + third-party libraries.
It does NOT import from api/ or core/. api/ imports from auth/, not the
other way around. Settings reach auth/ as constructor arguments.
"""
