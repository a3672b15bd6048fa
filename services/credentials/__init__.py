"""
Credential gating for video generation.
"""

from .gate import CredentialGate, CredentialState
from .selector import ApiKeySelector, CredentialSelectionError, CredentialSelector

__all__ = [
    "CredentialGate",
    "CredentialState",
    "ApiKeySelector",
    "CredentialSelectionError",
    "CredentialSelector",
]
