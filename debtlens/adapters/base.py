from abc import ABC, abstractmethod
from typing import Optional, Dict, Any


class UnsupportedProviderError(ValueError):
    """Raised when ANALYSIS_PROVIDER names a provider with no adapter."""


class BaseModelAdapter(ABC):
    """
    Abstract base class for all LLM providers.
    Enforces a common interface for generation.
    """

    @abstractmethod
    async def generate(self, prompt: str, system_prompt: Optional[str] = None, **kwargs) -> Dict[str, Any]:
        """
        Generates text from the provider.
        
        Args:
            prompt: User input
            system_prompt: Optional system instruction
            **kwargs: Extra model params (max_tokens, temperature, ...)
            
        Returns:
            Dict containing:
                - response: str
                - model: str
                - provider: str
                - tokens_used: int
        """
        pass
