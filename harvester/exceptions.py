"""Custom exceptions for the repository harvester."""

class CrawlerError(Exception):
    """Base class for harvester errors."""
    def __init__(self, message: str):
        super().__init__(message)

class ConfigurationError(CrawlerError):
    """Raised when there is a configuration issue."""

class TransportError(CrawlerError):
    """Raised when a single call to the GraphQL endpoint fails."""

class NetworkError(TransportError):
    """Raised for timeouts, connection failures and unreadable bodies."""

class HTTPStatusError(TransportError):
    """Raised for non-success HTTP status codes."""
    def __init__(self, status_code: int, message: str):
        self.status_code = status_code
        super().__init__(message)

class ServerError(HTTPStatusError):
    """Raised for HTTP 5xx responses."""

class UnauthorizedError(HTTPStatusError):
    """Raised when the endpoint rejects the credential (HTTP 401)."""
    def __init__(self, message: str = "Unauthorized - check token"):
        super().__init__(401, message)

class PersistenceError(CrawlerError):
    """Raised when a batch cannot be written to the database."""

class ExportError(CrawlerError):
    """Raised when the export file cannot be written."""

class S3UploadError(CrawlerError):
    """Raised when an S3 upload fails."""
