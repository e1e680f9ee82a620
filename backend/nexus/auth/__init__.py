from nexus.auth.local import LocalAuthProvider, hash_password, verify_password
from nexus.auth.provider import AuthProvider, AuthStateCallback, Identity

__all__ = [
    "AuthProvider",
    "AuthStateCallback",
    "Identity",
    "LocalAuthProvider",
    "hash_password",
    "verify_password",
]
