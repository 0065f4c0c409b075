from typing import Optional, Dict, Any
from groq import AsyncGroq
from debtlens.adapters.base import BaseModelAdapter


class GroqAdapter(BaseModelAdapter):
    def __init__(self, api_key: str, default_model: str, timeout: float = 30.0, client: Optional[AsyncGroq] = None):
        self.client = client or AsyncGroq(api_key=api_key, timeout=timeout)
        self.default_model = default_model

    async def generate(self, prompt: str, system_prompt: Optional[str] = None, model: Optional[str] = None, **kwargs) -> Dict[str, Any]:
        """
        Calls Groq API. Returns response + token usage.
        """
        target_model = model or self.default_model
        messages = []
        
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        
        messages.append({"role": "user", "content": prompt})

        completion = await self.client.chat.completions.create(
            model=target_model,
            messages=messages,
            **kwargs
        )

        tokens = 0
        if hasattr(completion, "usage") and completion.usage:
            tokens = getattr(completion.usage, "total_tokens", 0) or 0

        return {
            "response": completion.choices[0].message.content,
            "model": target_model,
            "provider": "groq",
            "tokens_used": tokens,
        }
