"""
Handlers package - Contains all kopf handlers of the operator.

This package organizes handlers by resource type:
- shared_secret.py: SharedSecret reconciliation
- shared_secret_request.py: SharedSecretRequest reconciliation
- triggers.py: indices and watchers turning related changes into
  SharedSecretRequest reconciles
"""
