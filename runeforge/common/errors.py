"""Error taxonomy shared by the pipeline, the gateway and persistence."""


class RuneForgeError(Exception):
    """Base class for all RuneForge errors."""
    pass


class InputError(RuneForgeError):
    """Unsupported or missing input file. Surfaced before any pipeline run."""
    pass


class TransportError(RuneForgeError):
    """Network failure or timeout talking to the proxy or provider."""
    pass


class ProviderError(RuneForgeError):
    """Non-2xx status or undecodable body returned by the provider."""

    def __init__(self, message: str, status_code: int = 0):
        super().__init__(message)
        self.status_code = status_code


class ParseError(RuneForgeError):
    """Provider output could not be turned into usable structured data."""

    def __init__(self, message: str, raw: str = ""):
        super().__init__(message)
        self.raw = raw


class PersistenceError(RuneForgeError):
    """Writing a rune to its persistence backend failed."""
    pass


class FrameExtractionError(RuneForgeError):
    """No still frame could be captured from a video."""
    pass
