"""
Constants used throughout the shared secret operator.

This module defines all constant values used by the operator including:
- API coordinates of the custom resources
- Finalizer names for cleanup coordination
- Resource labels and annotations
- Event actions and reasons
"""

import logging
import os

# Custom resource coordinates
API_GROUP = "sharedsecretctl.klauser.link"
API_VERSION = "v1"
API_GROUP_VERSION = f"{API_GROUP}/{API_VERSION}"

SHARED_SECRET_KIND = "SharedSecret"
SHARED_SECRET_PLURAL = "sharedsecrets"
SHARED_SECRET_REQUEST_KIND = "SharedSecretRequest"
SHARED_SECRET_REQUEST_PLURAL = "sharedsecretrequests"

# Field manager and event reporting component
CONTROLLER_NAME = "sharedsecretctl"

# Finalizer constants for cleanup coordination
# These prevent Kubernetes from deleting resources until cleanup is complete
SHARED_SECRET_FINALIZER = f"{API_GROUP}/shared-secret"
SHARED_SECRET_REQUEST_FINALIZER = f"{API_GROUP}/shared-secret-request"

# Label constants for resource identification and management
MANAGED_BY_LABEL_KEY = "app.kubernetes.io/managed-by"
MANAGED_BY_LABEL_VALUE = CONTROLLER_NAME

# Annotation touched on a SharedSecretRequest to make kopf re-run its handlers
TRIGGER_ANNOTATION = f"{API_GROUP}/trigger"

# Fallback re-evaluation interval (in seconds)
DEFAULT_REQUEUE_INTERVAL = 300  # 5 minutes

# Event constants (core/v1 events attached to the triggering object)
EVENT_TYPE_NORMAL = "Normal"
EVENT_ACTION_CREATING = "Creating"
EVENT_REASON_LOCAL_SECRET_MISSING = "LocalSecretMissing"
EVENT_ACTION_UPDATING = "Updating"
EVENT_REASON_LOCAL_SECRET_OUTDATED = "LocalSecretOutdated"

# Handler entry logging
HANDLER_ENTRY_LOG_LEVEL = getattr(
    logging, os.getenv("HANDLER_ENTRY_LOG_LEVEL", "INFO").upper(), logging.INFO
)

# Error message templates
ERROR_CRD_NOT_QUERYABLE = "CRD {} is not queryable; {}. Is the CRD installed?"
