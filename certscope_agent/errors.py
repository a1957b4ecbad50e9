from __future__ import annotations


class CertScopeError(Exception):
    """Base class for every error raised by the analysis core."""


class ValidationError(CertScopeError):
    """Domain failed validation before any provider was contacted."""

    def __init__(self, domain: str, message: str = "Invalid domain format"):
        super().__init__(message)
        self.domain = domain


class SourceError(CertScopeError):
    """A single upstream source failed; recorded per source, never fatal."""


class AnalysisTimeout(SourceError):
    pass


class ProviderError(SourceError):
    pass


class TransparencyTimeout(SourceError):
    pass


class TransparencyError(SourceError):
    pass


class OrchestratorTimeout(CertScopeError):
    def __init__(self, domain: str, deadline_s: float):
        super().__init__(f"Analysis of {domain} exceeded {deadline_s:g}s deadline")
        self.domain = domain
        self.deadline_s = deadline_s
