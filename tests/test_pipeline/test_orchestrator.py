"""Tests for the generation pipeline."""

from __future__ import annotations

import subprocess
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from downfolio.clients.llm_client import LLMResponse
from downfolio.config import ConfigStore, MappingEnvironment
from downfolio.errors import (
    ConverterNotInstalledError,
    EntryNotFoundError,
    NoApiKeyConfiguredError,
    TemplateNotSelectedError,
)
from downfolio.export.pandoc import PandocConverter
from downfolio.models.document import DocumentSelection, DocumentType, OutputFormat, Provider
from downfolio.models.registry import Job, Template
from downfolio.pipeline.customizer import DocumentCustomizer
from downfolio.pipeline.orchestrator import GenerationPipeline, GenerationRequest, GenerationResult


def _fake_pandoc(args, **kwargs):
    """subprocess.run stand-in: answers --version and writes the -o target."""
    if "-o" in args:
        Path(args[args.index("-o") + 1]).write_bytes(b"binary")
    return subprocess.CompletedProcess(args, 0, stdout="pandoc 3.1", stderr="")


@pytest.fixture
def registered(template_registry, job_registry, resume_file, cover_letter_file, job_file):
    template_registry.add(Template(name="base", type=DocumentType.RESUME), resume_file)
    template_registry.add(Template(name="base-cover", type=DocumentType.COVER_LETTER), cover_letter_file)
    job_registry.add(Job(name="acme-swe"), job_file)


@pytest.fixture
def make_pipeline(app_paths, template_registry, job_registry, client_factory):
    def _make(env: dict[str, str] | None = None, converter=None) -> GenerationPipeline:
        store = ConfigStore(app_paths.config_file, env=MappingEnvironment(env or {}))
        return GenerationPipeline(
            templates=template_registry,
            jobs=job_registry,
            customizer=DocumentCustomizer(store, client_factory=client_factory),
            converter=converter or PandocConverter(),
            output_root=app_paths.output_dir,
        )

    return _make


class TestGenerationPipeline:
    async def test_markdown_only_writes_exact_text(self, registered, make_pipeline, mock_llm, app_paths):
        mock_llm.generate = AsyncMock(
            return_value=LLMResponse(text="# Resume\nCustomized", input_tokens=10, output_tokens=5)
        )
        pipeline = make_pipeline({"OPENAI_API_KEY": "sk-test"})

        with patch("downfolio.export.pandoc.subprocess.run") as mock_run:
            result = await pipeline.run(
                GenerationRequest(
                    job="acme-swe",
                    selection=DocumentSelection.RESUME,
                    resume_template="base",
                    formats=[OutputFormat.MARKDOWN],
                    provider=Provider.OPENAI,
                )
            )

        out_dir = app_paths.output_dir / "acme-swe"
        assert isinstance(result, GenerationResult)
        assert result.output_dir == out_dir
        assert result.files == [out_dir / "resume.md"]
        assert (out_dir / "resume.md").read_text(encoding="utf-8") == "# Resume\nCustomized"
        assert sorted(p.name for p in out_dir.iterdir()) == ["resume.md"]
        mock_run.assert_not_called()
        assert result.usage["input"] == 10

    async def test_docx_written_after_markdown(self, registered, make_pipeline, app_paths):
        pipeline = make_pipeline({"OPENAI_API_KEY": "sk-test"})

        with patch("downfolio.export.pandoc.subprocess.run", side_effect=_fake_pandoc):
            result = await pipeline.run(
                GenerationRequest(
                    job="acme-swe",
                    resume_template="base",
                    formats=[OutputFormat.DOCX],
                    output_name="acme-2026",
                )
            )

        out_dir = app_paths.output_dir / "acme-2026"
        assert result.files == [out_dir / "resume.md", out_dir / "resume.docx"]
        assert all(p.exists() for p in result.files)

    async def test_no_api_key_fails_before_any_work(self, registered, make_pipeline, client_factory, app_paths):
        pipeline = make_pipeline({})

        with pytest.raises(NoApiKeyConfiguredError):
            await pipeline.run(GenerationRequest(job="acme-swe", resume_template="base"))

        client_factory.assert_not_called()
        assert list(app_paths.output_dir.iterdir()) == []

    async def test_both_documents_resume_first(self, registered, make_pipeline, mock_llm, app_paths):
        pipeline = make_pipeline({"ANTHROPIC_API_KEY": "sk-ant"})
        phases = []

        result = await pipeline.run(
            GenerationRequest(
                job="acme-swe",
                selection=DocumentSelection.BOTH,
                resume_template="base",
                cover_letter_template="base-cover",
            ),
            on_phase=lambda phase, detail: phases.append(phase),
        )

        assert result.provider is Provider.ANTHROPIC
        assert result.model == "claude-sonnet-4-5"
        assert [p.name for p in result.files] == ["resume.md", "cover_letter.md"]
        assert list(result.documents) == [DocumentType.RESUME, DocumentType.COVER_LETTER]
        first_prompt = mock_llm.generate.call_args_list[0].args[0]
        assert "Resume Template:" in first_prompt
        assert phases[0] == "job"
        assert phases[-1] == "done"

    async def test_missing_template_selection(self, registered, make_pipeline, client_factory):
        pipeline = make_pipeline({"OPENAI_API_KEY": "sk-test"})
        with pytest.raises(TemplateNotSelectedError, match="Cover letter template not selected"):
            await pipeline.run(
                GenerationRequest(job="acme-swe", selection=DocumentSelection.COVER_LETTER)
            )
        client_factory.assert_not_called()

    async def test_unknown_job(self, registered, make_pipeline):
        pipeline = make_pipeline({"OPENAI_API_KEY": "sk-test"})
        with pytest.raises(EntryNotFoundError):
            await pipeline.run(GenerationRequest(job="nope", resume_template="base"))

    async def test_no_formats_writes_nothing(self, registered, make_pipeline, app_paths):
        pipeline = make_pipeline({"OPENAI_API_KEY": "sk-test"})
        result = await pipeline.run(GenerationRequest(job="acme-swe", resume_template="base", formats=[]))
        assert result.files == []
        assert result.documents[DocumentType.RESUME] == "# Tailored\n\nContent"
        assert list((app_paths.output_dir / "acme-swe").iterdir()) == []

    async def test_pandoc_missing_keeps_markdown(self, registered, make_pipeline, app_paths):
        pipeline = make_pipeline({"OPENAI_API_KEY": "sk-test"})

        with patch("downfolio.export.pandoc.subprocess.run", side_effect=FileNotFoundError("pandoc")):
            with pytest.raises(ConverterNotInstalledError):
                await pipeline.run(
                    GenerationRequest(job="acme-swe", resume_template="base", formats=[OutputFormat.PDF])
                )

        assert (app_paths.output_dir / "acme-swe" / "resume.md").exists()
