"""
Shared error handling for the permissions engine.

Authorization outcomes are never exceptions; they are PermissionResult
denials. The types below cover configuration mistakes and infrastructure
failures only.
"""

from typing import Dict, Any, Optional


class PermissionsException(Exception):
    """Base exception for the permissions engine."""

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ConfigurationError(PermissionsException):
    """Programming or platform configuration mistakes."""

    def __init__(self, message: str = "Configuration error", details: Optional[Dict[str, Any]] = None,
                 code: str = "CONFIGURATION_ERROR"):
        super().__init__(code, message, details)


class InvalidFacetError(ConfigurationError):
    """Malformed facet reference."""

    def __init__(self, facet: str):
        super().__init__(
            f'Invalid facet format: {facet}. Expected "scope:name" or "scope:name:value"',
            {"facet": facet},
            code="INVALID_FACET"
        )


class FacetNotDefinedError(ConfigurationError):
    """Facet reference has no catalog definition."""

    def __init__(self, facet: str):
        super().__init__(f"Facet not defined: {facet}", {"facet": facet}, code="FACET_NOT_DEFINED")


class PersistenceError(PermissionsException):
    """Backing store errors."""

    def __init__(self, message: str = "Persistence error", details: Optional[Dict[str, Any]] = None):
        super().__init__("PERSISTENCE_ERROR", message, details)


class QueueUnavailableError(PermissionsException):
    """Audit queue could not accept a record."""

    def __init__(self, message: str = "Audit queue unavailable", details: Optional[Dict[str, Any]] = None):
        super().__init__("QUEUE_UNAVAILABLE", message, details)


class AuditDeliveryError(PermissionsException):
    """An audit record could not be recorded by any channel."""

    def __init__(self, message: str = "Audit record could not be delivered",
                 details: Optional[Dict[str, Any]] = None):
        super().__init__("AUDIT_DELIVERY_FAILED", message, details)
