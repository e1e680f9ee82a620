from nexus.models.account import Account
from nexus.models.document import Document

__all__ = [
    "Account",
    "Document",
]
