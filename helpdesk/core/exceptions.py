"""
Core Exceptions
================

Application error hierarchy. Every exception carries a stable `error_code`
that the HTTP layer returns to clients alongside the message.

Triage failure taxonomy:
- ResourceNotFoundException: ticket missing at run start, fatal for the run
- LLMException: external model backend failed, recovered by fallback
- RepositoryException / AuditWriteException: storage write failed, fatal
- QueueFullException: the background worker refused a run
"""

from typing import Optional


class ApplicationException(Exception):
    """Base exception for all application errors."""

    error_code = "application_error"

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class RepositoryException(ApplicationException):
    """A store operation failed."""

    error_code = "storage_error"


class AuditWriteException(RepositoryException):
    """A required audit entry could not be appended; the run is aborted."""

    error_code = "audit_write_failed"

    def __init__(self, action: str, ticket_id: str, message: str):
        self.action = action
        self.ticket_id = ticket_id
        super().__init__(
            f"Failed to record {action} for ticket {ticket_id}: {message}",
            {"action": action, "ticket_id": ticket_id}
        )


class ValidationException(ApplicationException):
    """Input rejected before any state was touched."""

    error_code = "validation_error"


class QueueFullException(ValidationException):
    """The background triage queue is stopped or cannot accept more runs."""

    error_code = "queue_full"


class ResourceNotFoundException(ApplicationException):
    """Exception when a requested resource is not found."""

    error_code = "not_found"

    def __init__(self, resource_type: str, resource_id: Optional[str] = None):
        self.resource_type = resource_type
        self.resource_id = resource_id
        if resource_id:
            message = f"{resource_type} with id '{resource_id}' not found"
        else:
            message = f"{resource_type} not found"
        super().__init__(message, {"resource_type": resource_type, "resource_id": resource_id})


class ConfigurationException(ApplicationException):
    """Settings or the triage config file are unusable."""

    error_code = "configuration_error"


class ExternalServiceException(ApplicationException):
    """Base exception for external service failures."""

    error_code = "upstream_error"

    def __init__(self, service_name: str, message: str, details: Optional[dict] = None):
        self.service_name = service_name
        super().__init__(f"{service_name}: {message}", details)


class LLMException(ExternalServiceException):
    """The chat-completion backend failed or answered with nothing usable."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__("LLM Service", message, details)
