"""Pydantic models for registry entries persisted in storage.json."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from downfolio.models.document import DocumentType


class Job(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    file_path: str = Field(default="", alias="filePath")

    @property
    def key(self) -> str:
        return self.name


class Template(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    type: DocumentType
    file_path: str = Field(default="", alias="filePath")

    @property
    def key(self) -> tuple[str, DocumentType]:
        return (self.name, self.type)
