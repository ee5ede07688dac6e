"""AI customization engine: tailors one template to one job description."""

from __future__ import annotations

import logging

from downfolio.clients.llm_client import KNOWN_MODELS, ClientFactory, create_client
from downfolio.config import ConfigStore, LLMSettings
from downfolio.errors import InvalidModelError, MissingApiKeyError, NoApiKeyConfiguredError
from downfolio.models.document import CustomizeRequest, CustomizeResult, DocumentType, Provider
from downfolio.utils.markdown_tools import strip_code_fences

logger = logging.getLogger(__name__)

_OUTPUT_RULES = """\
- Return ONLY the customized markdown content, no explanations or meta-commentary
- Do NOT wrap the response in code blocks (no triple backticks)
- Return raw markdown text only"""

RESUME_SYSTEM_PROMPT = f"""\
You are an expert resume writer specializing in ATS (Applicant Tracking System) optimization and keyword matching.
Your task is to customize resume templates to match specific job descriptions while maintaining authenticity and accuracy.

Guidelines:
- Match keywords from the job description naturally throughout the resume
- Optimize for ATS systems by using standard section headers and formatting
- Highlight relevant skills and experiences that align with the job requirements
- Maintain truthful representation of the candidate's background
- Use action verbs and quantifiable achievements where possible
- Keep the same structure and sections as the template
{_OUTPUT_RULES}"""

COVER_LETTER_SYSTEM_PROMPT = f"""\
You are an expert cover letter writer specializing in personalized, compelling cover letters that connect candidate experiences to specific job opportunities.

Guidelines:
- Address the specific company and role mentioned in the job description
- Connect the candidate's background to the job requirements naturally
- Show genuine interest and research about the company/role
- Use a professional but personable tone
- Highlight 2-3 key experiences or skills that directly relate to the job
- Keep the same structure and style as the template
{_OUTPUT_RULES}"""

RESUME_INSTRUCTIONS = """\
1. Analyze the job description for key requirements, skills, and keywords
2. Customize the resume template to emphasize relevant experiences and skills
3. Match keywords naturally throughout the resume
4. Optimize for ATS systems
5. Maintain the markdown format and structure
6. Return the complete customized resume in markdown format"""

COVER_LETTER_INSTRUCTIONS = """\
1. Extract the company name and role from the job description
2. Customize the cover letter to address this specific opportunity
3. Connect the candidate's background to the job requirements
4. Show genuine interest and understanding of the role
5. Maintain the markdown format and structure
6. Return the complete customized cover letter in markdown format"""


def get_system_prompt(document_type: DocumentType) -> str:
    if DocumentType(document_type) is DocumentType.RESUME:
        return RESUME_SYSTEM_PROMPT
    return COVER_LETTER_SYSTEM_PROMPT


def get_user_prompt(template: str, job_description: str, document_type: DocumentType) -> str:
    """Embed the job description and template verbatim in a fixed scaffold."""
    if DocumentType(document_type) is DocumentType.RESUME:
        noun, heading, instructions = "resume", "Resume Template", RESUME_INSTRUCTIONS
    else:
        noun, heading, instructions = "cover letter", "Cover Letter Template", COVER_LETTER_INSTRUCTIONS

    return f"""Please customize the following {noun} template to match the job description provided.

Job Description:
{job_description}

{heading}:
{template}

Instructions:
{instructions}"""


class DocumentCustomizer:
    def __init__(
        self,
        config: ConfigStore,
        client_factory: ClientFactory = create_client,
        settings: LLMSettings | None = None,
    ):
        self.config = config
        self.client_factory = client_factory
        self.settings = settings or LLMSettings()
        self._token_log: list[tuple[str, int, int]] = []

    def resolve_provider(self, provider: Provider | str | None = None) -> tuple[Provider, str]:
        """Pick the provider and its API key.

        An explicit provider must have a key. Otherwise OpenAI is preferred,
        then Anthropic.
        """
        if provider is not None:
            provider = Provider(provider)
            key = self.config.get_api_key(provider)
            if not key:
                raise MissingApiKeyError(
                    f"{provider.display_name} API key not found. "
                    f"Set {provider.value.upper()}_API_KEY in config or environment variables.",
                    provider=provider,
                )
            return provider, key

        for candidate in (Provider.OPENAI, Provider.ANTHROPIC):
            key = self.config.get_api_key(candidate)
            if key:
                return candidate, key

        raise NoApiKeyConfiguredError(
            "No API key found. Please set OPENAI_API_KEY or ANTHROPIC_API_KEY "
            "in config or environment variables."
        )

    def resolve_model(self, provider: Provider | str, model: str | None = None) -> str:
        """Explicit model, then the configured default, then the built-in fallback."""
        provider = Provider(provider)
        return model or self.config.get_default_model(provider) or self.settings.fallback_model(provider)

    @staticmethod
    def validate_model(provider: Provider | str, model: str) -> None:
        provider = Provider(provider)
        if model not in KNOWN_MODELS[provider]:
            raise InvalidModelError(
                f'Model "{model}" is not a valid {provider.display_name} model. '
                f"Choose one of: {', '.join(KNOWN_MODELS[provider])}",
                provider=provider,
            )

    async def customize(self, request: CustomizeRequest) -> CustomizeResult:
        """Make one provider call and return cleaned markdown."""
        provider, api_key = self.resolve_provider(request.provider)
        model = self.resolve_model(provider, request.model)

        system = get_system_prompt(request.document_type)
        prompt = get_user_prompt(request.template, request.job_description, request.document_type)

        client = self.client_factory(provider, api_key, timeout=self.settings.timeout)
        temperature = self.settings.openai_temperature if provider is Provider.OPENAI else None
        logger.info("Customizing %s with %s/%s", request.document_type.value, provider.value, model)
        response = await client.generate(
            prompt,
            system,
            model=model,
            temperature=temperature,
            max_tokens=self.settings.max_tokens,
        )
        self._token_log.append((model, response.input_tokens, response.output_tokens))

        return CustomizeResult(
            content=strip_code_fences(response.text),
            provider=provider,
            model=model,
            input_tokens=response.input_tokens,
            output_tokens=response.output_tokens,
        )

    def get_token_summary(self) -> dict:
        """Return accumulated token usage across customize() calls and reset it."""
        summary = {
            "input": sum(t[1] for t in self._token_log),
            "output": sum(t[2] for t in self._token_log),
            "calls": list(self._token_log),
        }
        self._token_log.clear()
        return summary
