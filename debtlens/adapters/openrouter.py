import httpx
from typing import Optional, Dict, Any
from debtlens.adapters.base import BaseModelAdapter

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"


class OpenRouterAdapter(BaseModelAdapter):
    def __init__(
        self,
        api_key: str,
        default_model: str,
        base_url: str = OPENROUTER_BASE_URL,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.base_url = base_url
        self.default_model = default_model
        self.timeout = timeout
        self.transport = transport

    async def generate(self, prompt: str, system_prompt: Optional[str] = None, model: Optional[str] = None, **kwargs) -> Dict[str, Any]:
        """
        Calls OpenRouter chat completions. Returns response + token usage.
        """
        target_model = model or self.default_model
        
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "HTTP-Referer": "https://debtlens.local",
            "X-Title": "DebtLens",
        }

        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        payload = {
            "model": target_model,
            "messages": messages,
            **kwargs
        }

        async with httpx.AsyncClient(transport=self.transport) as client:
            resp = await client.post(
                f"{self.base_url}/chat/completions",
                json=payload,
                headers=headers,
                timeout=self.timeout
            )
            resp.raise_for_status()
            data = resp.json()
            
            content = data["choices"][0]["message"]["content"]

            tokens = 0
            usage = data.get("usage", {})
            if usage:
                tokens = usage.get("total_tokens", 0) or 0
            
            return {
                "response": content,
                "model": target_model,
                "provider": "openrouter",
                "tokens_used": tokens,
            }
