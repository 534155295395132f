"""vault/ -- Per-user site credential records for SecurePass.

Layer rule: vault/ imports from auth/ and core/ only. It does NOT import
from api/.
"""
