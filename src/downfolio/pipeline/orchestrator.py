"""Generation pipeline: registry -> AI customization -> conversion -> Output/."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

from downfolio.errors import TemplateNotSelectedError
from downfolio.export.pandoc import PandocConverter
from downfolio.models.document import (
    CustomizeRequest,
    DocumentSelection,
    DocumentType,
    OutputFormat,
    Provider,
)
from downfolio.pipeline.customizer import DocumentCustomizer
from downfolio.registry.store import JobRegistry, TemplateRegistry

logger = logging.getLogger(__name__)


@dataclass
class GenerationRequest:
    job: str
    selection: DocumentSelection = DocumentSelection.RESUME
    resume_template: str | None = None
    cover_letter_template: str | None = None
    formats: list[OutputFormat] = field(default_factory=lambda: [OutputFormat.MARKDOWN])
    output_name: str | None = None  # defaults to the job name
    provider: Provider | None = None
    model: str | None = None

    def template_for(self, doc_type: DocumentType) -> str | None:
        if doc_type is DocumentType.RESUME:
            return self.resume_template
        return self.cover_letter_template


@dataclass
class GenerationResult:
    """Complete result from one generation run."""

    output_dir: Path
    provider: Provider
    model: str
    files: list[Path] = field(default_factory=list)
    documents: dict[DocumentType, str] = field(default_factory=dict)
    elapsed_seconds: float = 0.0
    usage: dict = field(default_factory=dict)


class GenerationPipeline:
    """Generates each requested document in turn, resume first."""

    def __init__(
        self,
        templates: TemplateRegistry,
        jobs: JobRegistry,
        customizer: DocumentCustomizer,
        converter: PandocConverter,
        output_root: str | Path,
    ):
        self.templates = templates
        self.jobs = jobs
        self.customizer = customizer
        self.converter = converter
        self.output_root = Path(output_root)

    async def run(
        self,
        request: GenerationRequest,
        *,
        on_phase: Callable[[str, str], None] | None = None,
    ) -> GenerationResult:
        """Run the full generation pipeline.

        Args:
            request: Job, templates, formats and provider/model choices.
            on_phase: Optional callback(phase_name, detail) for progress.
        """
        start = time.monotonic()

        def _notify(phase: str, detail: str = ""):
            if on_phase:
                on_phase(phase, detail)

        doc_types = DocumentSelection(request.selection).document_types
        for doc_type in doc_types:
            if not request.template_for(doc_type):
                raise TemplateNotSelectedError(f"{doc_type.label.capitalize()} template not selected")

        # Fail on missing keys before touching the filesystem.
        provider, _ = self.customizer.resolve_provider(request.provider)
        model = self.customizer.resolve_model(provider, request.model)

        _notify("job", "Reading job description...")
        job_description = self.jobs.read_content(request.job)

        output_dir = self.output_root / (request.output_name or request.job)
        output_dir.mkdir(parents=True, exist_ok=True)

        formats = [OutputFormat(f) for f in request.formats]
        binary_formats = [f for f in formats if f.is_binary]
        result = GenerationResult(output_dir=output_dir, provider=provider, model=model)

        for doc_type in doc_types:
            template_content = self.templates.read_content(request.template_for(doc_type), doc_type)

            _notify("customize", f"AI customizing {doc_type.label}...")
            customized = await self.customizer.customize(
                CustomizeRequest(
                    template=template_content,
                    job_description=job_description,
                    document_type=doc_type,
                    provider=provider,
                    model=model,
                )
            )
            result.documents[doc_type] = customized.content

            if formats:
                if binary_formats:
                    _notify("convert", f"Converting {doc_type.label} to Word/PDF...")
                result.files.extend(
                    self.converter.convert_markdown_to_formats(
                        customized.content,
                        f"{doc_type.file_stem}.md",
                        output_dir,
                        binary_formats,
                    )
                )

        result.usage = self.customizer.get_token_summary()
        result.elapsed_seconds = time.monotonic() - start
        logger.info("Generated %d file(s) in %s", len(result.files), output_dir)
        _notify("done", f"Documents ready in {result.elapsed_seconds:.1f}s")
        return result
