"""CLI interface using typer + rich."""

from __future__ import annotations

import asyncio
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, TypeVar

from dotenv import load_dotenv

load_dotenv()

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.prompt import Confirm, Prompt

from downfolio.clients.llm_client import KNOWN_MODELS, create_client
from downfolio.config import ConfigStore
from downfolio.errors import DownfolioError, NoApiKeyConfiguredError
from downfolio.export.pandoc import PANDOC_INSTALL_URL, PandocConverter
from downfolio.models.document import DocumentSelection, DocumentType, OutputFormat, Provider
from downfolio.models.registry import Job, Template
from downfolio.paths import AppPaths
from downfolio.pipeline.customizer import DocumentCustomizer
from downfolio.pipeline.orchestrator import GenerationPipeline, GenerationRequest
from downfolio.registry.store import JobRegistry, TemplateRegistry
from downfolio.utils.markdown_tools import preview_text, validate_markdown

app = typer.Typer(
    name="downfolio",
    help="AI-powered CLI tool for generating customized resumes and cover letters from markdown templates.",
    no_args_is_help=True,
)
config_app = typer.Typer(help="Manage configuration", no_args_is_help=True)
template_app = typer.Typer(help="Manage templates", no_args_is_help=True)
job_app = typer.Typer(help="Manage job descriptions", no_args_is_help=True)
app.add_typer(config_app, name="config")
app.add_typer(template_app, name="template")
app.add_typer(job_app, name="job")

console = Console()
logger = logging.getLogger(__name__)

T = TypeVar("T")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_time=False, show_path=False)],
        force=True,
    )


# --- helpers ---


def _fail(message: str) -> typer.Exit:
    console.print(f"[red]{message}[/red]")
    return typer.Exit(1)


@contextmanager
def _reported(action: str) -> Iterator[None]:
    """Turn DownfolioError into a red message and exit status 1."""
    try:
        yield
    except DownfolioError as e:
        logger.debug("%s failed", action, exc_info=True)
        raise _fail(f"{action} failed: {e}") from e


def _initialized_paths() -> AppPaths:
    paths = AppPaths.from_env()
    if not paths.is_initialized():
        raise _fail('Downfolio not initialized. Run "downfolio init" first.')
    return paths


def _select(message: str, options: list[tuple[T, str]]) -> T:
    """Numbered single-choice prompt."""
    console.print(f"[bold]{message}[/bold]")
    for i, (_, label) in enumerate(options, 1):
        console.print(f"  {i}. {label}")
    choice = Prompt.ask(
        "Choose",
        choices=[str(i) for i in range(1, len(options) + 1)],
        default="1",
        console=console,
    )
    return options[int(choice) - 1][0]


def _mask(value: str | None) -> str:
    return "*" * len(value) if value else "undefined"


def _inside(path: Path, directory: Path) -> bool:
    return path.resolve().is_relative_to(directory.resolve())


# --- init / config ---


@app.command()
def init(
    api_key: str = typer.Option(None, "--api-key", help="OpenAI API key"),
    anthropic_api_key: str = typer.Option(None, "--anthropic-api-key", help="Anthropic API key"),
) -> None:
    """Initialize Downfolio."""
    paths = AppPaths.from_env()

    openai_key = api_key
    if openai_key is None:
        openai_key = Prompt.ask(
            "OpenAI API key (press Enter to skip)", default="", password=True,
            show_default=False, console=console,
        )
    anthropic_key = anthropic_api_key
    if anthropic_key is None:
        anthropic_key = Prompt.ask(
            "Anthropic API key, optional (press Enter to skip)", default="", password=True,
            show_default=False, console=console,
        )

    with _reported("Initialization"):
        with console.status("Creating directory structure..."):
            paths.ensure()

        store = ConfigStore(paths.config_file)
        config = store.load()
        # Skipped keys keep their existing values.
        if openai_key:
            config["OPENAI_API_KEY"] = openai_key
        if anthropic_key:
            config["ANTHROPIC_API_KEY"] = anthropic_key
        store.save(config)

    console.print(f"[green]Downfolio initialized! → {paths.base}/[/green]")


@config_app.command("set")
def config_set(
    key: str = typer.Argument(help="Config key, e.g. OPENAI_API_KEY"),
    value: str = typer.Argument(None, help="Config value (prompted if omitted)"),
) -> None:
    """Set a config value."""
    store = ConfigStore(_initialized_paths().config_file)
    if value is None:
        value = Prompt.ask("Config value", password=True, console=console)
    with _reported("Config operation"):
        store.set_value(key, value)
    console.print(f'[green]Config "{key}" set successfully[/green]')


@config_app.command("update")
def config_update(
    key: str = typer.Argument(None, help="Config key (chosen from existing keys if omitted)"),
    value: str = typer.Argument(None, help="New value (prompted if omitted)"),
) -> None:
    """Update an existing config value."""
    store = ConfigStore(_initialized_paths().config_file)
    if key is None:
        keys = list(store.all())
        if not keys:
            console.print('[yellow]No configuration found to update. Use "set" to add a new value.[/yellow]')
            return
        key = _select("Which config value to update?", [(k, k) for k in keys])

    current = store.get_value(key)
    if not current:
        console.print(f'[yellow]Config "{key}" not found. Use "set" to add a new value.[/yellow]')
        return

    console.print(f"Current value: {_mask(current)}")
    if value is None:
        value = Prompt.ask("New config value", password=True, console=console)
    with _reported("Config operation"):
        store.set_value(key, value)
    console.print(f'[green]Config "{key}" updated successfully[/green]')


@config_app.command("get")
def config_get(key: str = typer.Argument(help="Config key")) -> None:
    """Show a config value (masked)."""
    store = ConfigStore(_initialized_paths().config_file)
    value = store.get_value(key)
    if value:
        console.print(f"{key}: {_mask(value)}")
    else:
        console.print(f'[yellow]Config "{key}" not found[/yellow]')


@config_app.command("list")
def config_list() -> None:
    """List all config keys with masked values."""
    config = ConfigStore(_initialized_paths().config_file).all()
    if not config:
        console.print("No configuration found")
        return
    console.print("[bold]Configuration:[/bold]")
    for key, value in config.items():
        console.print(f"  {key}: {_mask(value)}")


# --- templates ---


@template_app.command("add")
def template_add(
    doc_type: DocumentType = typer.Option(None, "--type", help="Template type"),
    file: Path = typer.Option(None, "--file", help="Template file inside ~/Downfolio/Templates"),
    name: str = typer.Option(None, "--name", help="Template name"),
) -> None:
    """Register a markdown file from the Templates directory."""
    paths = _initialized_paths()
    registry = TemplateRegistry(paths.templates_dir)

    available = registry.files_in_directory()
    if not available:
        raise _fail(
            f"No markdown files found in {paths.templates_dir}. "
            "Please create template files there first."
        )

    if doc_type is None:
        doc_type = _select(
            "Template type?",
            [(DocumentType.RESUME, "Resume"), (DocumentType.COVER_LETTER, "Cover letter")],
        )

    if file is not None:
        if not _inside(file, paths.templates_dir):
            raise _fail(f"Template file must be in {paths.templates_dir}")
        file = file.resolve()
    else:
        file = _select("Which template file to register?", [(f, f.name) for f in available])

    if name is None:
        name = Prompt.ask("Template name (for reference)", default=file.stem, console=console)

    with _reported("Template operation"):
        registry.add(Template(name=name, type=doc_type), file)
    console.print(f'[green]Template "{name}" registered successfully[/green]')


@template_app.command("list")
def template_list() -> None:
    """List registered templates by type."""
    registry = TemplateRegistry(_initialized_paths().templates_dir)
    templates = registry.list()
    if not templates:
        console.print("No templates found")
        return

    console.print("[bold]Templates:[/bold]")
    for doc_type, heading in (
        (DocumentType.RESUME, "Resume Templates"),
        (DocumentType.COVER_LETTER, "Cover Letter Templates"),
    ):
        group = [t for t in templates if t.type is doc_type]
        if group:
            console.print(f"  {heading}:")
            for t in group:
                console.print(f"    • {t.name} [dim]{t.file_path}[/dim]")
    console.print(f"\n{len(templates)} template(s) found")


@template_app.command("remove")
def template_remove(
    name: str = typer.Option(None, "--name", help="Template name"),
    doc_type: DocumentType = typer.Option(None, "--type", help="Template type"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Unregister a template. The markdown file is left on disk."""
    registry = TemplateRegistry(_initialized_paths().templates_dir)
    templates = registry.list()
    if not templates:
        console.print("[yellow]No templates found[/yellow]")
        return

    if name and doc_type:
        target = registry.get(name, doc_type)
        if target is None:
            raise _fail(f'Template "{name}" of type "{doc_type.value}" not found')
    else:
        target = _select(
            "Which template to remove?",
            [(t, f"{t.name} ({t.type.value})") for t in templates],
        )

    if not yes and not Confirm.ask(f'Are you sure you want to remove "{target.name}"?', default=False, console=console):
        console.print("Operation cancelled")
        raise typer.Exit(0)

    with _reported("Template operation"):
        registry.remove(target.name, target.type)
    console.print(f'[green]Template "{target.name}" removed successfully[/green]')


# --- jobs ---


@job_app.command("add")
def job_add(
    file: Path = typer.Option(None, "--file", help="Job description file inside ~/Downfolio/Jobs"),
    name: str = typer.Option(None, "--name", help="Job name"),
) -> None:
    """Register a job description from the Jobs directory."""
    paths = _initialized_paths()
    registry = JobRegistry(paths.jobs_dir)

    available = registry.files_in_directory()
    if not available:
        raise _fail(
            f"No markdown files found in {paths.jobs_dir}. "
            "Please create job description files there first."
        )

    if file is not None:
        if not _inside(file, paths.jobs_dir):
            raise _fail(f"Job file must be in {paths.jobs_dir}")
        file = file.resolve()
    else:
        file = _select("Which job description file to register?", [(f, f.name) for f in available])

    if name is None:
        name = Prompt.ask("Job name (for reference)", default=file.stem, console=console)

    with _reported("Job operation"):
        registry.add(Job(name=name), file)
    console.print(f'[green]Job "{name}" registered successfully[/green]')


@job_app.command("list")
def job_list() -> None:
    """List registered jobs."""
    jobs = JobRegistry(_initialized_paths().jobs_dir).list()
    if not jobs:
        console.print("No jobs found")
        return
    console.print("[bold]Jobs:[/bold]")
    for j in jobs:
        console.print(f"  • {j.name} [dim]{j.file_path}[/dim]")
    console.print(f"\n{len(jobs)} job(s) found")


@job_app.command("remove")
def job_remove(
    name: str = typer.Option(None, "--name", help="Job name"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Unregister a job. The markdown file is left on disk."""
    registry = JobRegistry(_initialized_paths().jobs_dir)
    jobs = registry.list()
    if not jobs:
        console.print("[yellow]No jobs found[/yellow]")
        return

    if name is None:
        name = _select("Which job to remove?", [(j.name, j.name) for j in jobs])

    if not yes and not Confirm.ask(f'Are you sure you want to remove "{name}"?', default=False, console=console):
        console.print("Operation cancelled")
        raise typer.Exit(0)

    with _reported("Job operation"):
        registry.remove(name)
    console.print(f'[green]Job "{name}" removed successfully[/green]')


# --- generate ---


def _pick_template(registry: TemplateRegistry, doc_type: DocumentType, given: str | None) -> str:
    candidates = registry.by_type(doc_type)
    if not candidates:
        raise _fail(f'No {doc_type.label} templates found. Add one with "downfolio template add"')
    if given:
        return given
    return _select(f"Which {doc_type.label} template?", [(t.name, t.name) for t in candidates])


def _parse_formats(raw: str) -> list[OutputFormat]:
    formats = []
    for part in raw.split(","):
        part = part.strip().lower()
        if part:
            formats.append(OutputFormat(part))
    return formats


@app.command()
def generate(
    job: str = typer.Option(None, "--job", help="Job name"),
    doc_type: DocumentSelection = typer.Option(None, "--type", help="What to generate"),
    resume_template: str = typer.Option(None, "--resume-template", help="Resume template name"),
    cover_letter_template: str = typer.Option(None, "--cover-letter-template", help="Cover letter template name"),
    formats: list[OutputFormat] = typer.Option(None, "--format", "-f", help="Output format (repeatable)"),
    output: str = typer.Option(None, "--output", "-o", help="Output directory name under ~/Downfolio/Output"),
    provider: Provider = typer.Option(None, "--provider", help="AI provider"),
    model: str = typer.Option(None, "--model", help="Model name"),
) -> None:
    """Generate customized documents for a registered job."""
    paths = _initialized_paths()
    templates = TemplateRegistry(paths.templates_dir)
    jobs = JobRegistry(paths.jobs_dir)
    store = ConfigStore(paths.config_file)
    customizer = DocumentCustomizer(store, client_factory=create_client)

    if job is None:
        available = jobs.list()
        if not available:
            raise _fail('No jobs found. Add one with "downfolio job add"')
        job = _select("Which job?", [(j.name, j.name) for j in available])
    if jobs.get(job) is None:
        raise _fail(f'Job "{job}" not found. Use "downfolio job list" to see available jobs.')

    if doc_type is None:
        doc_type = _select(
            "What would you like to generate?",
            [
                (DocumentSelection.RESUME, "Resume only"),
                (DocumentSelection.BOTH, "Both resume and cover letter"),
                (DocumentSelection.COVER_LETTER, "Cover letter only"),
            ],
        )

    if DocumentType.RESUME in doc_type.document_types:
        resume_template = _pick_template(templates, DocumentType.RESUME, resume_template)
    if DocumentType.COVER_LETTER in doc_type.document_types:
        cover_letter_template = _pick_template(templates, DocumentType.COVER_LETTER, cover_letter_template)

    if not formats:
        raw = Prompt.ask("Output format(s), comma-separated (markdown, docx, pdf)", default="markdown", console=console)
        try:
            formats = _parse_formats(raw)
        except ValueError:
            raise _fail(f"Invalid format list: {raw}")

    if output is None:
        output = Prompt.ask("Output name", default=job, console=console)

    with _reported("Generation"):
        if provider is not None:
            provider, _ = customizer.resolve_provider(provider)
        else:
            keyed = [p for p in Provider if store.get_api_key(p)]
            if not keyed:
                raise NoApiKeyConfiguredError(
                    "No API keys found. Set OPENAI_API_KEY or ANTHROPIC_API_KEY "
                    "in config or environment variables."
                )
            provider = keyed[0] if len(keyed) == 1 else _select(
                "Which AI provider?", [(p, p.display_name) for p in keyed]
            )

        if model is not None:
            customizer.validate_model(provider, model)
        else:
            default = customizer.resolve_model(provider)
            model = Prompt.ask(
                f"Which {provider.display_name} model?",
                choices=list(KNOWN_MODELS[provider]),
                default=default if default in KNOWN_MODELS[provider] else KNOWN_MODELS[provider][0],
                console=console,
            )

        pipeline = GenerationPipeline(
            templates=templates,
            jobs=jobs,
            customizer=customizer,
            converter=PandocConverter(),
            output_root=paths.output_dir,
        )
        request = GenerationRequest(
            job=job,
            selection=doc_type,
            resume_template=resume_template,
            cover_letter_template=cover_letter_template,
            formats=list(formats),
            output_name=output,
            provider=provider,
            model=model,
        )

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
        ) as progress:
            task = progress.add_task("Generating documents...", total=None)

            def on_phase(phase: str, detail: str) -> None:
                progress.update(task, description=detail)

            result = asyncio.run(pipeline.run(request, on_phase=on_phase))

    for path in result.files:
        console.print(f"[green]Saved: {path}[/green]")
    console.print(
        Panel(
            f"Provider: {result.provider.display_name} | Model: {result.model}\n"
            f"Tokens: {result.usage.get('input', 0)} in / {result.usage.get('output', 0)} out\n"
            f"Elapsed: {result.elapsed_seconds:.1f}s",
            title=f"Documents ready → {result.output_dir}/",
        )
    )


# --- convert / preview / validate ---


def _choose_formats(given: list[str] | None) -> list[OutputFormat]:
    if not given:
        raw = Prompt.ask("Output format(s), comma-separated (docx, pdf)", default="docx", console=console)
        given = [part.strip() for part in raw.split(",")]

    valid = [OutputFormat(f) for f in given if f in (OutputFormat.DOCX.value, OutputFormat.PDF.value)]
    invalid = [f for f in given if f not in (OutputFormat.DOCX.value, OutputFormat.PDF.value)]
    if invalid:
        console.print(
            f"[yellow]Invalid format(s) ignored: {', '.join(invalid)}. "
            'Valid formats are "docx" and "pdf".[/yellow]'
        )
    if not valid:
        raise _fail('Invalid format. Must be "docx" and/or "pdf"')
    return valid


@app.command()
def convert(
    file: Path = typer.Option(None, "--file", help="Markdown file to convert"),
    formats: list[str] = typer.Option(None, "--format", "-f", help="docx and/or pdf (repeatable)"),
    output_dir: Path = typer.Option(None, "--output-dir", help="Directory for converted files"),
    output_name: str = typer.Option(None, "--output-name", help="Base name for converted files"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Overwrite existing files without asking"),
) -> None:
    """Convert an existing markdown file to Word and/or PDF."""
    paths = _initialized_paths()

    if file is None:
        candidates = sorted(paths.output_dir.rglob("*.md")) if paths.output_dir.exists() else []
        if not candidates:
            raise _fail(
                'No markdown files found in output directory. Generate documents first with "downfolio generate"'
            )
        file = _select(
            "Which markdown file to convert?",
            [(f, str(f.relative_to(paths.output_dir))) for f in candidates],
        )

    if not file.exists():
        raise _fail(f"File not found: {file}")
    if file.suffix != ".md":
        raise _fail("Input file must be a markdown file (.md)")

    chosen = _choose_formats(formats)

    converter = PandocConverter()
    if not converter.is_available():
        raise _fail(
            "Pandoc is not installed. Please install Pandoc to convert to docx/pdf formats.\n"
            f"Installation: {PANDOC_INSTALL_URL}"
        )

    target_dir = output_dir.resolve() if output_dir else file.parent
    target_dir.mkdir(parents=True, exist_ok=True)
    base_name = output_name or file.stem
    targets = [(fmt, target_dir / f"{base_name}.{fmt.value}") for fmt in chosen]

    existing = [p.name for _, p in targets if p.exists()]
    if existing and not yes:
        if not Confirm.ask(f"File(s) already exist: {', '.join(existing)}. Overwrite?", default=False, console=console):
            console.print("Conversion cancelled")
            raise typer.Exit(0)

    with _reported("Conversion"):
        with console.status("Converting files...") as status:
            for fmt, target in targets:
                status.update(f"Converting to {fmt.value.upper()}...")
                if fmt is OutputFormat.DOCX:
                    converter.convert_to_docx(file, target)
                else:
                    converter.convert_to_pdf(file, target)

    created = ", ".join(p.name for _, p in targets)
    console.print(f"[green]Files created: {created} → {target_dir}/[/green]")


def _read_markdown_argument(file: Path | None, prompt: str) -> tuple[Path, str]:
    if file is None:
        file = Path(Prompt.ask(prompt, default="resume.md", console=console))
    if not file.exists():
        raise _fail(f"File not found: {file}")
    try:
        return file, file.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise _fail(f"File is not valid UTF-8: {file}") from e


@app.command()
def preview(file: Path = typer.Argument(None, help="Markdown file to preview")) -> None:
    """Show the first part of a markdown file as plain text."""
    file, content = _read_markdown_argument(file, "File to preview?")
    console.print(Panel(preview_text(content), title=f"Preview: {file.name}"))


@app.command()
def validate(file: Path = typer.Argument(None, help="Markdown file to validate")) -> None:
    """Check front matter, emptiness and heading structure of a markdown file."""
    file, content = _read_markdown_argument(file, "File to validate?")
    report = validate_markdown(content)

    if report.ok:
        console.print("[green]✓ Syntax valid[/green]")
        if report.has_headers:
            console.print("[green]✓ Structure valid[/green]")
        console.print("[green]✓ No errors found[/green]")
        return

    console.print("[red]Validation failed[/red]")
    if not report.front_matter_valid:
        console.print("[red]✗ Frontmatter invalid[/red]")
    if not report.has_content:
        console.print("[red]✗ File is empty[/red]")
    raise typer.Exit(1)


if __name__ == "__main__":
    app()
