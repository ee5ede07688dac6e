"""Tests for template and job registries."""

import json

import pytest

from downfolio.errors import (
    DocumentEncodingError,
    DocumentFileNotFoundError,
    DownfolioError,
    DuplicateEntryError,
    EntryNotFoundError,
)
from downfolio.models.document import DocumentType
from downfolio.models.registry import Job, Template


class TestTemplateRegistry:
    def test_add_stores_resolved_path(self, template_registry, resume_file):
        stored = template_registry.add(Template(name="base", type=DocumentType.RESUME), resume_file)
        assert stored.file_path == str(resume_file.resolve())
        assert template_registry.get("base", DocumentType.RESUME) == stored

    def test_storage_uses_camel_case(self, template_registry, resume_file):
        template_registry.add(Template(name="base", type=DocumentType.RESUME), resume_file)
        raw = json.loads(template_registry.storage_path.read_text())
        assert raw == [{"name": "base", "type": "resume", "filePath": str(resume_file.resolve())}]

    def test_same_name_different_type_allowed(self, template_registry, resume_file, cover_letter_file):
        template_registry.add(Template(name="base", type=DocumentType.RESUME), resume_file)
        template_registry.add(Template(name="base", type=DocumentType.COVER_LETTER), cover_letter_file)
        assert len(template_registry.list()) == 2
        assert [t.type for t in template_registry.by_type("cover-letter")] == [DocumentType.COVER_LETTER]

    def test_duplicate_rejected(self, template_registry, resume_file):
        template_registry.add(Template(name="base", type=DocumentType.RESUME), resume_file)
        with pytest.raises(DuplicateEntryError, match='Template "base" of type "resume" already exists'):
            template_registry.add(Template(name="base", type=DocumentType.RESUME), resume_file)
        assert len(template_registry.list()) == 1

    def test_missing_source_file(self, template_registry, app_paths):
        with pytest.raises(DocumentFileNotFoundError, match="Template file not found"):
            template_registry.add(
                Template(name="ghost", type=DocumentType.RESUME),
                app_paths.templates_dir / "ghost.md",
            )
        assert template_registry.list() == []

    def test_remove_keeps_file(self, template_registry, resume_file):
        template_registry.add(Template(name="base", type=DocumentType.RESUME), resume_file)
        removed = template_registry.remove("base", DocumentType.RESUME)
        assert removed.name == "base"
        assert template_registry.list() == []
        assert resume_file.exists()

    def test_remove_unknown(self, template_registry):
        with pytest.raises(EntryNotFoundError, match='Template "nope" of type "resume" not found'):
            template_registry.remove("nope", DocumentType.RESUME)

    def test_read_content_is_verbatim(self, template_registry, app_paths):
        path = app_paths.templates_dir / "crlf.md"
        path.write_bytes(b"# Title\r\n\r\n- item\r\n")
        template_registry.add(Template(name="crlf", type=DocumentType.RESUME), path)
        assert template_registry.read_content("crlf", DocumentType.RESUME) == "# Title\r\n\r\n- item\r\n"

    def test_read_content_not_utf8(self, template_registry, app_paths):
        path = app_paths.templates_dir / "latin1.md"
        path.write_bytes("# Résumé\n".encode("latin-1"))
        template_registry.add(Template(name="latin1", type=DocumentType.RESUME), path)
        with pytest.raises(DocumentEncodingError, match="latin1.md") as exc_info:
            template_registry.read_content("latin1", DocumentType.RESUME)
        assert isinstance(exc_info.value, DownfolioError)

    def test_read_content_file_deleted(self, template_registry, resume_file):
        template_registry.add(Template(name="base", type=DocumentType.RESUME), resume_file)
        resume_file.unlink()
        with pytest.raises(DocumentFileNotFoundError):
            template_registry.read_content("base", DocumentType.RESUME)

    def test_files_in_directory_lists_markdown_only(self, template_registry, resume_file, app_paths):
        (app_paths.templates_dir / "notes.txt").write_text("x")
        assert template_registry.files_in_directory() == [resume_file]


class TestRegistryPersistence:
    def test_base_registry_is_abstract(self, tmp_path):
        from downfolio.registry.store import _JsonRegistry

        with pytest.raises(TypeError):
            _JsonRegistry(tmp_path)

    def test_missing_storage_is_empty(self, template_registry):
        result = template_registry.load_result()
        assert result.value == []
        assert not result.degraded

    def test_corrupt_storage_falls_back(self, template_registry, caplog):
        template_registry.storage_path.write_text("{not json")
        result = template_registry.load_result()
        assert result.value == []
        assert result.degraded
        assert "Ignoring unreadable template registry" in caplog.text

    def test_non_array_storage_falls_back(self, job_registry):
        job_registry.storage_path.write_text('{"name": "x"}')
        assert job_registry.load_result().degraded

    def test_invalid_entry_falls_back(self, template_registry):
        template_registry.storage_path.write_text('[{"name": "x", "type": "letter", "filePath": "/x"}]')
        assert template_registry.load_result().degraded

    def test_load_creates_directory(self, tmp_path):
        from downfolio.registry.store import JobRegistry

        registry = JobRegistry(tmp_path / "Jobs")
        registry.list()
        assert registry.directory.is_dir()


class TestJobRegistry:
    def test_add_get_read(self, job_registry, job_file, sample_job_description):
        job_registry.add(Job(name="example-senior"), job_file)
        assert job_registry.get("example-senior").file_path == str(job_file.resolve())
        assert job_registry.read_content("example-senior") == sample_job_description

    def test_duplicate_name(self, job_registry, job_file):
        job_registry.add(Job(name="example"), job_file)
        with pytest.raises(DuplicateEntryError, match='Job "example" already exists'):
            job_registry.add(Job(name="example"), job_file)

    def test_read_unknown(self, job_registry):
        with pytest.raises(EntryNotFoundError, match='Job "missing" not found'):
            job_registry.read_content("missing")

    def test_remove(self, job_registry, job_file):
        job_registry.add(Job(name="example"), job_file)
        job_registry.remove("example")
        assert job_registry.get("example") is None
