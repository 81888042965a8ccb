class ImgvecError(Exception):
    """Base error for all user-facing imgvec exceptions."""


class ConfigurationError(ImgvecError):
    """Raised when configuration is invalid or incomplete."""


class FilesystemError(ImgvecError):
    """Raised when a directory or file cannot be listed, read, or written."""


class ValidationError(ImgvecError):
    """Raised when an artifact or a service response is malformed."""


class ExternalServiceError(ImgvecError):
    """Raised when the embedding service or the vector store fails."""


class ConflictError(ImgvecError):
    """Raised when the destination collection already exists and force is not set."""
