"""
Shared Secret Operator - Mirrors secrets across namespaces on request.

A SharedSecret publishes a secret owned by one namespace. A
SharedSecretRequest in any other namespace asks for a local copy of it,
which the operator creates and keeps in sync:
- Cross-namespace distribution without cross-namespace read access for users
- Status reporting on both resources
- Owner-reference based cleanup of local copies
"""

__version__ = "0.1.0"
