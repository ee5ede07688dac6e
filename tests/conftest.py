"""Shared test fixtures."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from downfolio.clients.llm_client import LLMResponse
from downfolio.config import ConfigStore, MappingEnvironment
from downfolio.paths import AppPaths
from downfolio.registry.store import JobRegistry, TemplateRegistry


@pytest.fixture
def sample_resume_template() -> str:
    return """# Jane Doe
jane@example.com | (555) 010-2030

## Summary
Backend engineer with 5 years of experience building APIs.

## Experience
### Acme Corp - Software Engineer (2021 - present)
- Built Python services handling 1M requests per day
- Cut p95 latency by 40% with Redis caching

## Skills
Python, PostgreSQL, Docker
"""


@pytest.fixture
def sample_cover_letter_template() -> str:
    return """# Cover Letter

Dear Hiring Manager,

I am excited to apply for the role at your company.

Sincerely,
Jane Doe
"""


@pytest.fixture
def sample_job_description() -> str:
    return """# Senior Backend Engineer at Example Inc

## Requirements
- 5+ years of Python
- Experience with Kubernetes and Kafka
- Strong PostgreSQL skills
"""


@pytest.fixture
def app_paths(tmp_path) -> AppPaths:
    paths = AppPaths(base=tmp_path / "Downfolio")
    paths.ensure()
    return paths


@pytest.fixture
def env() -> MappingEnvironment:
    return MappingEnvironment({"OPENAI_API_KEY": "sk-test"})


@pytest.fixture
def config_store(app_paths, env) -> ConfigStore:
    return ConfigStore(app_paths.config_file, env=env)


@pytest.fixture
def template_registry(app_paths) -> TemplateRegistry:
    return TemplateRegistry(app_paths.templates_dir)


@pytest.fixture
def job_registry(app_paths) -> JobRegistry:
    return JobRegistry(app_paths.jobs_dir)


@pytest.fixture
def resume_file(app_paths, sample_resume_template) -> Path:
    path = app_paths.templates_dir / "base-resume.md"
    path.write_text(sample_resume_template, encoding="utf-8")
    return path


@pytest.fixture
def cover_letter_file(app_paths, sample_cover_letter_template) -> Path:
    path = app_paths.templates_dir / "base-cover.md"
    path.write_text(sample_cover_letter_template, encoding="utf-8")
    return path


@pytest.fixture
def job_file(app_paths, sample_job_description) -> Path:
    path = app_paths.jobs_dir / "example-senior.md"
    path.write_text(sample_job_description, encoding="utf-8")
    return path


@pytest.fixture
def mock_llm() -> MagicMock:
    """A client whose generate() returns canned markdown."""
    client = MagicMock()
    client.generate = AsyncMock(
        return_value=LLMResponse(text="# Tailored\n\nContent", input_tokens=100, output_tokens=50)
    )
    return client


@pytest.fixture
def client_factory(mock_llm) -> MagicMock:
    return MagicMock(return_value=mock_llm)
