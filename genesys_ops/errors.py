class GenesysError(Exception):
    """Base class for every failure raised by genesys_ops."""


class ConfigurationError(GenesysError):
    """Client id, client secret or region is missing or invalid."""


class AuthenticationError(GenesysError):
    """The client-credentials token exchange was rejected."""

    def __init__(self, message, status_code=None, error_code=None):
        super().__init__(message)
        self.status_code = status_code
        self.error_code = error_code


class SchemaIncompleteError(GenesysError):
    """A write was refused because the table's primary key is not known."""


class MissingKeyValueError(SchemaIncompleteError):
    """The primary key value (or row id) for a write is empty."""

    def __init__(self, message, field=None):
        super().__init__(message)
        self.field = field


class DuplicateKeyError(GenesysError):
    def __init__(self, key_value, table_id=None):
        super().__init__(f"A row with key '{key_value}' already exists")
        self.key_value = key_value
        self.table_id = table_id


class InvalidQueryError(GenesysError, ValueError):
    """Caller supplied query parameters the platform would reject."""


class UpstreamError(GenesysError):
    """Any other failure reported by the platform.

    Keeps the platform's own message, error code and trace id (contextId)
    so support can find the request on their side.
    """

    def __init__(self, message, status_code=None, code=None, context_id=None, path=None):
        self.platform_message = message
        self.status_code = status_code
        self.code = code
        self.context_id = context_id
        self.path = path
        super().__init__(self._format())

    def _format(self):
        text = str(self.platform_message or "Unknown upstream error")
        if self.status_code:
            text = f"HTTP {self.status_code}: {text}"
        if self.context_id:
            text += f" (Trace ID: {self.context_id})"
        return text


class NotFoundError(UpstreamError):
    """Referenced entity, table or row does not exist."""


class UpstreamTimeoutError(UpstreamError):
    pass


class VersionConflictError(UpstreamError):
    """A version-stamped write lost against a newer version on the server."""


class PartialDataError(GenesysError):
    """An enrichment call failed; the primary data is still usable.

    Only ever logged, never raised to callers of DataManager.
    """

    def __init__(self, operation, cause):
        super().__init__(f"{operation} degraded: {cause}")
        self.operation = operation
        self.cause = cause
