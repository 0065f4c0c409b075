from debtlens.adapters.base import BaseModelAdapter, UnsupportedProviderError
from debtlens.adapters.groq import GroqAdapter
from debtlens.adapters.openrouter import OpenRouterAdapter
from debtlens.config import Settings


def build_adapter(settings: Settings) -> BaseModelAdapter:
    """Pick the analysis model provider named by ANALYSIS_PROVIDER."""
    provider = settings.ANALYSIS_PROVIDER.lower()
    if provider == "groq":
        return GroqAdapter(
            api_key=settings.GROQ_API_KEY,
            default_model=settings.DEFAULT_MODEL_GROQ,
            timeout=settings.HTTP_TIMEOUT_SECONDS,
        )
    if provider == "openrouter":
        return OpenRouterAdapter(
            api_key=settings.OPENROUTER_API_KEY,
            default_model=settings.DEFAULT_MODEL_OPENROUTER,
            timeout=settings.HTTP_TIMEOUT_SECONDS,
        )
    raise UnsupportedProviderError(f"Unknown analysis provider: {settings.ANALYSIS_PROVIDER}")
