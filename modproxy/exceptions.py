"""
Exception classes for the module proxy.

Every error that can reach a client derives from ProxyError and carries the
HTTP status it is answered with.
"""


class ProxyError(Exception):
    """Base exception for all proxy errors."""

    status_code = 500


class ValidationError(ProxyError):
    """Raised for malformed escaping or an unsupported endpoint shape."""

    status_code = 400


class NamespaceRejected(ProxyError):
    """Raised when a request path is outside the served namespace."""

    status_code = 404

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"{path} is ignored")


class NotFoundError(ProxyError):
    """Raised when a module or version definitively does not exist."""

    status_code = 404


class RefNotFoundError(NotFoundError):
    """Raised when the destination repository has no tag or branch by that name."""

    def __init__(self, repo: str, ref: str):
        self.repo = repo
        self.ref = ref
        super().__init__(f"Reference '{ref}' not found in repository {repo}")


class UpstreamFailure(ProxyError):
    """Raised for network or authentication errors talking to the destination host."""

    status_code = 500


class FetchTimeout(ProxyError):
    """Raised when listing or fetching exceeds its time limit."""

    status_code = 504

    def __init__(self, operation: str, timeout: float):
        self.operation = operation
        self.timeout = timeout
        super().__init__(f"{operation} did not finish within {timeout:g}s, retry later")


class InternalError(ProxyError):
    """Raised for local failures: cache directories, archive assembly, encoding."""

    status_code = 500


class ConfigError(Exception):
    """Raised when required configuration is missing or invalid."""

    pass
