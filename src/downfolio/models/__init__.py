"""Data models for templates, jobs and document generation."""

from downfolio.models.document import (
    CustomizeRequest,
    CustomizeResult,
    DocumentSelection,
    DocumentType,
    OutputFormat,
    Provider,
)
from downfolio.models.registry import Job, Template

__all__ = [
    "CustomizeRequest",
    "CustomizeResult",
    "DocumentSelection",
    "DocumentType",
    "Job",
    "OutputFormat",
    "Provider",
    "Template",
]
