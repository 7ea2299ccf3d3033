"""
Exception taxonomy for the emulator.

Startup errors (manifest, route construction) are raised by the loader and
registry; the CLI treats ManifestError as fatal while the registry logs and
skips RouteConstructionError. Per-request errors propagate up to the
dispatcher, which turns every one of them into a plain 500.
"""


class LocalFunctionsError(Exception):
    """Base class for every error raised by this package."""


class ManifestError(LocalFunctionsError):
    """The project manifest is missing, unparsable, or declares no packages."""


# ------------------------------------------------------------------
# Route construction (non-fatal, route is skipped)
# ------------------------------------------------------------------

class RouteConstructionError(LocalFunctionsError):
    """An action could not be turned into a route."""


class UnsupportedRuntime(RouteConstructionError):
    pass


class MissingDescriptor(RouteConstructionError):
    pass


class InvalidDescriptor(RouteConstructionError):
    pass


# ------------------------------------------------------------------
# Builds (never reach requests)
# ------------------------------------------------------------------

class BuildError(LocalFunctionsError):
    """A build exited non-zero, could not be spawned, or timed out."""

    def __init__(self, message: str, output: str = ""):
        super().__init__(message)
        self.output = output


# ------------------------------------------------------------------
# Per-request failures (all mapped to HTTP 500)
# ------------------------------------------------------------------

class InvocationError(LocalFunctionsError):
    """The function process failed or did not produce a usable result."""

    def __init__(self, message: str, stderr: str = ""):
        super().__init__(message)
        self.stderr = stderr


class RequestError(LocalFunctionsError):
    pass


class NoRouteMatch(RequestError):
    pass


class InvalidBody(RequestError):
    pass


class TransportError(LocalFunctionsError):
    """The request body could not be read from the connection."""
