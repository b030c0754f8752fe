from __future__ import annotations


class ContractAnalyzerError(RuntimeError):
    pass


class ValidationError(ContractAnalyzerError, ValueError):
    """Malformed address or chain id supplied by the caller."""


class ApiKeyError(ContractAnalyzerError):
    """Explorer API key is missing, a placeholder, or rejected by the explorer."""


class NetworkError(ContractAnalyzerError):
    """Transport failure, non-2xx status or an unparseable response body."""


class RateLimitError(NetworkError):
    """Explorer kept answering NOTOK / rate-limited after the retry cap."""


class ExplorerApiError(ContractAnalyzerError):
    """status=0 envelope that is neither a miss nor a rate limit."""


class RegistryError(ContractAnalyzerError):
    """The verification registry lookup itself faulted."""


class ConfigError(ContractAnalyzerError):
    """Chain configuration file is unreadable or inconsistent."""
