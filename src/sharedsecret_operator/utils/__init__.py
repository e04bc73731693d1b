"""
Utility modules for the shared secret operator.

This package contains helpers for Kubernetes API access, the store view over
kopf indices and handler logging.
"""
