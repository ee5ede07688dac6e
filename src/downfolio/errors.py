"""Exception hierarchy surfaced to the CLI boundary."""

from __future__ import annotations

from pathlib import Path

from downfolio.models.document import Provider


class DownfolioError(Exception):
    """Base class for every error the CLI reports to the user."""


class ConfigSaveError(DownfolioError):
    """The config file could not be written."""


# --- Registry ---


class RegistryError(DownfolioError):
    """Base class for template/job registry failures."""


class DuplicateEntryError(RegistryError):
    """An entry with the same identity key is already registered."""


class EntryNotFoundError(RegistryError):
    """No registry entry matches the requested identity key."""


class DocumentFileNotFoundError(DownfolioError, FileNotFoundError):
    """A markdown file referenced by a registry entry or conversion is missing."""

    def __init__(self, kind: str, path: str | Path):
        self.kind = kind
        self.path = Path(path)
        super().__init__(f"{kind} file not found: {self.path}")


class DocumentEncodingError(DownfolioError):
    """A registered markdown file is not valid UTF-8."""

    def __init__(self, path: str | Path, reason: str):
        self.path = Path(path)
        super().__init__(f"File is not valid UTF-8: {self.path} ({reason})")


class TemplateNotSelectedError(DownfolioError):
    """A document type was requested without naming its template."""


# --- AI providers ---


class ProviderError(DownfolioError):
    """Base class for LLM provider failures."""

    def __init__(self, message: str, provider: Provider | None = None):
        self.provider = provider
        super().__init__(message)


class MissingApiKeyError(ProviderError):
    """An explicitly requested provider has no API key."""


class NoApiKeyConfiguredError(ProviderError):
    """Neither provider has an API key in the environment or config."""


class InvalidModelError(ProviderError):
    """The requested model is not offered by the provider."""


class AuthenticationFailedError(ProviderError):
    """The provider rejected the API key."""


class RateLimitedError(ProviderError):
    """The provider throttled the request."""


class ModelAccessError(ProviderError):
    """The API key cannot use the requested model."""


class EmptyResponseError(ProviderError):
    """The provider answered without any text content."""


class ProviderAPIError(ProviderError):
    """Any other provider-side failure."""


# --- Conversion ---


class ConversionError(DownfolioError):
    """Pandoc could not produce the requested output."""


class ConverterNotInstalledError(ConversionError):
    """The Pandoc executable is not available."""


class PdfEngineError(ConversionError):
    """Both PDF engines failed."""
