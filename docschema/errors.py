"""
Error types for docschema.

This module defines all exception types raised by the engine and registry:
- DocSchemaError: Base exception
- SchemaNotFoundError: Unknown schema id / (namespace, name)
- VersionNotFoundError: Unknown version of a known schema
- InvalidSchemaError: Schema fails the meta-schema or cannot be parsed
- DuplicateVersionError: Caller-supplied version already stored
- ValidationFailedError: Data failed validation with throw_on_error
- StorageError / StorageTimeoutError: Backing store failures
- PluginRegistryFrozenError: Late registration of a type or format

Invariants:
    - All errors inherit from DocSchemaError
    - Every error carries a stable `code` for programmatic handling
    - Registry errors name the offending identifier in the message
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Optional

if TYPE_CHECKING:
    from .engine.validator import ValidationError, ValidationResult


class DocSchemaError(Exception):
    """Base exception for all docschema errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "DOCSCHEMA_ERROR"
        self.details = details or {}


class SchemaNotFoundError(DocSchemaError):
    """Schema does not exist.

    Raised when:
    - No version is stored for (namespace, name)
    - An engine-local schema id is unknown
    """

    def __init__(self, schema_id: str) -> None:
        super().__init__(
            f"Schema not found: {schema_id}",
            code="schema_not_found",
            details={"schema_id": schema_id},
        )
        self.schema_id = schema_id


class VersionNotFoundError(DocSchemaError):
    """A specific schema version does not exist."""

    def __init__(self, schema_id: str, version: str) -> None:
        super().__init__(
            f"Schema version not found: {schema_id}, version {version}",
            code="version_not_found",
            details={"schema_id": schema_id, "version": version},
        )
        self.schema_id = schema_id
        self.version = version


class InvalidSchemaError(DocSchemaError):
    """Schema is malformed.

    Raised when:
    - The schema does not conform to the meta-schema
    - The root schema is not an object or boolean
    - A keyword carries a value of the wrong shape
    - A `pattern` is not a valid regular expression
    """

    def __init__(
        self,
        message: str,
        errors: Optional[List["ValidationError"]] = None,
    ) -> None:
        errors = errors or []
        super().__init__(
            message,
            code="invalid_schema",
            details={"errors": [e.to_dict() for e in errors]},
        )
        self.errors = errors


class DuplicateVersionError(DocSchemaError):
    """Caller-supplied version already exists for the schema id."""

    def __init__(self, schema_id: str, version: str) -> None:
        super().__init__(
            f"Version {version} already registered for {schema_id}",
            code="duplicate_version",
            details={"schema_id": schema_id, "version": version},
        )
        self.schema_id = schema_id
        self.version = version


class ValidationFailedError(DocSchemaError):
    """Data validation failed and the caller asked for an exception.

    Attributes:
        errors: Every violation collected during the pass
        result: The full validation result
    """

    def __init__(self, result: "ValidationResult") -> None:
        messages = ", ".join(e.message for e in result.errors)
        super().__init__(
            f"Validation failed: {messages}",
            code="validation_failed",
            details={"errors": [e.to_dict() for e in result.errors]},
        )
        self.errors = result.errors
        self.result = result


class StorageError(DocSchemaError):
    """Backing store operation failed."""

    def __init__(self, message: str, operation: Optional[str] = None) -> None:
        super().__init__(
            message,
            code="storage_error",
            details={"operation": operation},
        )
        self.operation = operation


class StorageTimeoutError(StorageError):
    """Backing store did not answer within the configured timeout."""

    def __init__(self, operation: str, timeout: float) -> None:
        super().__init__(
            f"Storage operation '{operation}' timed out after {timeout}s",
            operation=operation,
        )
        self.code = "storage_timeout"
        self.details["timeout"] = timeout
        self.timeout = timeout


class PluginRegistryFrozenError(DocSchemaError):
    """Raised when registering a custom type or format after freeze."""

    def __init__(self, kind: str, name: str) -> None:
        super().__init__(
            f"Cannot register {kind} '{name}': registry is frozen",
            code="plugin_registry_frozen",
            details={"kind": kind, "name": name},
        )
