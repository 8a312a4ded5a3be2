"""
Error taxonomy for the removal-order pipeline.

Every collaborator raises one of these; the pipeline turns them into
explicit per-stage results and folds the first one into the outcome
notification.
"""

from typing import List


class PipelineError(Exception):
    """Base class for all pipeline errors."""

    error_code = "pipeline_error"

    def __init__(self, message: str, error_code: str | None = None):
        super().__init__(message)
        self.message = message
        if error_code:
            self.error_code = error_code


class ConfigError(PipelineError):
    """A required credential or setting is missing."""

    error_code = "config_error"


class UnsupportedProviderError(PipelineError):
    """No extraction strategy is registered for the requested provider."""

    error_code = "unsupported_provider"

    def __init__(self, provider: str):
        super().__init__(f"unsupported provider {provider}")
        self.provider = provider


class NetworkError(PipelineError):
    """A transport failure that survived all retry attempts."""

    error_code = "network_error"


class MalformedResponseError(PipelineError):
    """The extractor returned text that is not a JSON object."""

    error_code = "malformed_response"


class DecisionValidationError(PipelineError):
    """The extracted decision is missing one or more required fields."""

    error_code = "validation_error"

    def __init__(self, missing: List[str]):
        super().__init__(f"invalid decision format: {', '.join(missing)}")
        self.missing = missing


class InvalidTemplateError(PipelineError):
    """An unknown reply template name was requested."""

    error_code = "invalid_template"


class DeliveryError(PipelineError):
    """A ticket reply or tag update was rejected by the ticketing API."""

    error_code = "delivery_error"


class TicketingError(PipelineError):
    """Reading tickets, attachments or views from the ticketing API failed."""

    error_code = "ticketing_error"


class BanApiError(PipelineError):
    """The ban API answered with an error status or an unsuccessful body."""

    error_code = "ban_api_error"


class ExtractionError(PipelineError):
    """Aggregate of every per-agent extraction failure for one ticket."""

    error_code = "extraction_error"

    def __init__(self, failures: list):
        details = "; ".join(
            f"{failure.agent.provider}:{failure.agent.model}: {failure.cause}"
            for failure in failures
        )
        super().__init__(f"error extracting data from tickets: {details}")
        self.failures = failures


class PipelineStepError(PipelineError):
    """Wraps a stage error with the name of the stage that produced it."""

    def __init__(self, context: str, cause: Exception):
        super().__init__(f"{context}: {cause}", getattr(cause, "error_code", None))
        self.context = context
        self.__cause__ = cause
