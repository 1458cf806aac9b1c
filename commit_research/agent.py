from llama_index.embeddings.openai import OpenAIEmbedding
from pydantic_ai import Agent
from pydantic_ai.models import Model
from pydantic_ai.models.openai import OpenAIChatModel, OpenAIModelProfile
from pydantic_ai.providers.openai import OpenAIProvider
from pydantic_ai.settings import ModelSettings

from .config import Settings
from .models import CommitSummary, ReadmeSummary
from .prompt import COMMIT_SUMMARY_PROMPT, README_SUMMARY_PROMPT

MODEL_SETTINGS = ModelSettings(temperature=0.2, top_p=0.95, max_tokens=8192)

DEFAULT_HEADERS = {
    "HTTP-Referer": "https://github.com/commit-research",
    "X-Title": "commit-research",
}


def build_chat_model(settings: Settings) -> OpenAIChatModel:
    return OpenAIChatModel(
        model_name=settings.summary_model,
        provider=OpenAIProvider(
            base_url=settings.llm_base_url,
            api_key=settings.openrouter_api_key,
        ),
        profile=OpenAIModelProfile(openai_supports_tool_choice_required=False),
    )


def build_summary_agent(model: Model) -> Agent[None, CommitSummary]:
    return Agent(
        model=model,
        output_type=CommitSummary,
        instructions=COMMIT_SUMMARY_PROMPT,
        model_settings=MODEL_SETTINGS,
    )


def build_readme_agent(model: Model) -> Agent[None, ReadmeSummary]:
    return Agent(
        model=model,
        output_type=ReadmeSummary,
        instructions=README_SUMMARY_PROMPT,
        model_settings=MODEL_SETTINGS,
    )


def build_embed_model(settings: Settings) -> OpenAIEmbedding:
    return OpenAIEmbedding(
        model=settings.embedding_model,
        dimensions=settings.embedding_dimensions,
        api_base=settings.llm_base_url,
        api_key=settings.openrouter_api_key,
        default_headers=DEFAULT_HEADERS,
    )
