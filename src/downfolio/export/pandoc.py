"""Markdown to DOCX/PDF conversion by shelling out to Pandoc."""

from __future__ import annotations

import glob
import logging
import os
import shutil
import subprocess
from pathlib import Path
from typing import Iterable

from downfolio.errors import (
    ConversionError,
    ConverterNotInstalledError,
    DocumentFileNotFoundError,
    PdfEngineError,
)
from downfolio.models.document import OutputFormat

logger = logging.getLogger(__name__)

PANDOC_INSTALL_URL = "https://pandoc.org/installing.html"
INPUT_FORMAT = "markdown+smart"
PRIMARY_PDF_ENGINE = "pdflatex"
FALLBACK_PDF_ENGINE = "xelatex"

# Where TeX distributions put their binaries (TeX Live, MacTeX/BasicTeX, MiKTeX).
TEX_BIN_CANDIDATES = [
    "/Library/TeX/texbin",
    "/usr/local/texlive/*/bin/*",
    "/usr/share/texlive",
    "/opt/texlive/*/bin/*",
    "C:/Program Files/MiKTeX/miktex/bin/x64",
]


def find_tex_toolchain() -> str | None:
    """Return a directory containing a LaTeX engine, or None if none is installed."""
    texbin = os.environ.get("TEXBIN")
    if texbin and os.path.isdir(texbin):
        return texbin
    for engine in (PRIMARY_PDF_ENGINE, FALLBACK_PDF_ENGINE):
        found = shutil.which(engine)
        if found:
            return str(Path(found).parent)
    for pattern in TEX_BIN_CANDIDATES:
        for path in glob.glob(pattern):
            if os.path.isdir(path):
                return path
    return None


class PandocConverter:
    """Thin wrapper around the ``pandoc`` executable."""

    def __init__(self, executable: str = "pandoc"):
        self.executable = executable

    def _run(self, args: list[str]) -> subprocess.CompletedProcess:
        return subprocess.run(
            [self.executable, *args],
            capture_output=True,
            text=True,
            check=True,
        )

    def is_available(self) -> bool:
        """Probe ``pandoc --version``. Never raises."""
        try:
            self._run(["--version"])
        except (OSError, subprocess.SubprocessError):
            return False
        return True

    def convert_to_docx(self, markdown_path: str | Path, output_path: str | Path) -> Path:
        markdown_path, output_path = Path(markdown_path), Path(output_path)
        if not markdown_path.exists():
            raise DocumentFileNotFoundError("Markdown", markdown_path)

        try:
            self._run([
                str(markdown_path), "-o", str(output_path),
                "--from", INPUT_FORMAT, "--to", "docx", "--standalone",
            ])
        except (OSError, subprocess.SubprocessError) as e:
            raise ConversionError(f"Pandoc conversion to docx failed: {_describe(e)}") from e
        logger.debug("Wrote %s", output_path)
        return output_path

    def convert_to_pdf(self, markdown_path: str | Path, output_path: str | Path) -> Path:
        """Convert with pdflatex, falling back once to xelatex."""
        markdown_path, output_path = Path(markdown_path), Path(output_path)
        if not markdown_path.exists():
            raise DocumentFileNotFoundError("Markdown", markdown_path)

        base_args = [
            str(markdown_path), "-o", str(output_path),
            "--from", INPUT_FORMAT, "--to", "pdf",
        ]
        try:
            self._run([*base_args, f"--pdf-engine={PRIMARY_PDF_ENGINE}"])
        except (OSError, subprocess.SubprocessError) as primary_error:
            logger.info("%s failed (%s), retrying with %s",
                        PRIMARY_PDF_ENGINE, _describe(primary_error), FALLBACK_PDF_ENGINE)
            try:
                self._run([*base_args, f"--pdf-engine={FALLBACK_PDF_ENGINE}"])
            except (OSError, subprocess.SubprocessError) as fallback_error:
                raise PdfEngineError(_pdf_failure_message(fallback_error)) from fallback_error
        logger.debug("Wrote %s", output_path)
        return output_path

    def convert_markdown_to_formats(
        self,
        content: str,
        file_name: str,
        output_dir: str | Path,
        formats: Iterable[OutputFormat | str],
    ) -> list[Path]:
        """Write ``content`` to ``output_dir/file_name`` and convert it.

        The markdown file is always written. Conversions run docx then pdf;
        an exception stops the batch and leaves earlier files in place.
        """
        wanted = {OutputFormat(f) for f in formats}
        markdown_path = Path(output_dir) / file_name
        markdown_path.write_text(content, encoding="utf-8")
        created = [markdown_path]

        if (OutputFormat.DOCX in wanted or OutputFormat.PDF in wanted) and not self.is_available():
            raise ConverterNotInstalledError(
                "Pandoc is not installed. Please install Pandoc to convert to docx/pdf formats.\n"
                f"Installation: {PANDOC_INSTALL_URL}"
            )

        if OutputFormat.DOCX in wanted:
            created.append(self.convert_to_docx(markdown_path, markdown_path.with_suffix(".docx")))
        if OutputFormat.PDF in wanted:
            created.append(self.convert_to_pdf(markdown_path, markdown_path.with_suffix(".pdf")))
        return created


def _describe(error: BaseException) -> str:
    stderr = getattr(error, "stderr", None)
    if stderr:
        return stderr.strip()
    return str(error)


def _pdf_failure_message(error: BaseException) -> str:
    alternative = (
        "Alternatively, install wkhtmltopdf and run: "
        "pandoc <file>.md -o <file>.pdf --pdf-engine=wkhtmltopdf"
    )
    toolchain = find_tex_toolchain()
    if toolchain is None:
        return (
            f"PDF conversion failed: no LaTeX installation was found, so neither "
            f"{PRIMARY_PDF_ENGINE} nor {FALLBACK_PDF_ENGINE} could run.\n"
            "Install a TeX distribution (TeX Live on Linux, MacTeX or BasicTeX on macOS, "
            "MiKTeX on Windows) and make sure its bin directory is on PATH.\n"
            f"{alternative}"
        )
    return (
        f"PDF conversion failed with both {PRIMARY_PDF_ENGINE} and {FALLBACK_PDF_ENGINE} "
        f"(LaTeX found at {toolchain}).\n"
        f"Last error: {_describe(error)}\n"
        "Check that the engines in that directory are on PATH and that required LaTeX "
        "packages are installed.\n"
        f"{alternative}"
    )
