"""Error taxonomy for the PaperArch workbench."""


class PaperArchError(Exception):
    """Base class for every error raised by this package."""


class ValidationError(PaperArchError):
    """A command was invoked without its preconditions; nothing was sent."""


class ConfigurationError(PaperArchError):
    """Missing or unusable configuration (e.g. no API key)."""


class GatewayError(PaperArchError):
    """A backend exchange failed."""


class AnalysisError(GatewayError):
    """The analysis response was absent, malformed or incomplete."""


class RenderError(GatewayError):
    """The generation response carried no image payload."""


class RefineError(GatewayError):
    """The refinement response carried no image payload."""


class RequestTimeoutError(GatewayError, TimeoutError):
    """The backend did not answer within the configured timeout."""


class CancelledError(PaperArchError):
    """The in-flight exchange was cancelled by the user."""
