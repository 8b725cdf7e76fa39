"""Exception hierarchy shared by the ingestion pipeline and the API layer."""


class PipelineError(RuntimeError):
    """Base class for failures surfaced to callers of an ingestion run."""

    kind = "pipeline"


class InvalidInputError(PipelineError, ValueError):
    """Raised for malformed input before any I/O happens."""

    kind = "validation"


class ConsistencyError(PipelineError):
    """Raised when an internal precondition is violated; aborts the run."""

    kind = "consistency"


class GenerationSchemaError(PipelineError):
    """Raised when a generative model response does not match its schema."""

    kind = "schema"


class ProviderUnavailableError(PipelineError):
    """Raised when a provider is called without credentials configured."""

    kind = "configuration"
