class PalimpsestError(Exception):
    """Base error for all user-facing Palimpsest exceptions."""

    kind = "error"


class ConfigurationError(PalimpsestError):
    """Raised when configuration is invalid or incomplete."""

    kind = "configuration"


class ProjectNotInitializedError(PalimpsestError):
    """Raised when .palimpsest metadata is missing."""

    kind = "project_not_initialized"


class NotFoundError(PalimpsestError):
    """Raised when an identifier does not resolve to a stored resource."""

    kind = "not_found"


class MergeSourceNotFoundError(NotFoundError):
    """Raised when a merge-pages reference cannot be resolved."""

    kind = "merge_source_not_found"


class InvalidOperationError(PalimpsestError):
    """Raised when an edit operation is malformed (caller error)."""

    kind = "invalid_operation"


class InvalidPageIndexError(InvalidOperationError):
    """Raised when a page index is outside the document's current range."""

    kind = "invalid_page_index"


class InvalidParameterError(InvalidOperationError):
    """Raised when an operation parameter is missing or out of domain."""

    kind = "invalid_parameter"


class InvalidImageDataError(InvalidOperationError):
    """Raised when an embedded image payload cannot be decoded."""

    kind = "invalid_image_data"


class CapabilityFaultError(PalimpsestError):
    """Raised when the document engine rejects its input."""

    kind = "capability_fault"


class RecognitionFaultError(CapabilityFaultError):
    """Raised when text recognition fails."""

    kind = "recognition_fault"


class ConversionFaultError(CapabilityFaultError):
    """Raised when the format converter fails or is unavailable."""

    kind = "conversion_fault"


class StorageFaultError(PalimpsestError):
    """Raised when the durable medium rejects a read or write."""

    kind = "storage_fault"


class UnsupportedFormatError(PalimpsestError):
    """Raised when a conversion target is not supported."""

    kind = "unsupported_format"
