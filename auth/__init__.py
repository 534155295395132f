"""auth/ -- Identity, two-factor enrollment and session tokens for SecurePass.

Layer rule: auth/ imports only stdlib, third-party libraries, and core/.
It does NOT import from api/ or vault/.
api/ and vault/ import from auth/, not the other way around.
"""
