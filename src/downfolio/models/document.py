"""Enums and transient request/response models for document generation."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel


class DocumentType(str, Enum):
    RESUME = "resume"
    COVER_LETTER = "cover-letter"

    @property
    def file_stem(self) -> str:
        return "resume" if self is DocumentType.RESUME else "cover_letter"

    @property
    def label(self) -> str:
        return "resume" if self is DocumentType.RESUME else "cover letter"


class DocumentSelection(str, Enum):
    """What a generation run produces."""

    RESUME = "resume"
    COVER_LETTER = "cover-letter"
    BOTH = "both"

    @property
    def document_types(self) -> list[DocumentType]:
        if self is DocumentSelection.BOTH:
            return [DocumentType.RESUME, DocumentType.COVER_LETTER]
        return [DocumentType(self.value)]


class Provider(str, Enum):
    OPENAI = "openai"
    ANTHROPIC = "anthropic"

    @property
    def display_name(self) -> str:
        return "OpenAI" if self is Provider.OPENAI else "Anthropic"


class OutputFormat(str, Enum):
    MARKDOWN = "markdown"
    DOCX = "docx"
    PDF = "pdf"

    @property
    def is_binary(self) -> bool:
        return self is not OutputFormat.MARKDOWN


class CustomizeRequest(BaseModel):
    template: str
    job_description: str
    document_type: DocumentType
    provider: Provider | None = None
    model: str | None = None


class CustomizeResult(BaseModel):
    content: str  # Markdown
    provider: Provider
    model: str
    input_tokens: int = 0
    output_tokens: int = 0
