from typing import Optional, List, Dict
from openai import AsyncOpenAI

# Utils
from utils.log_utils import LogUtil

# Exceptions
from exceptions.flow_exception import FlowServiceException


class TextGenerationService:
    """Service for chat completions used by ai_answer nodes."""
    def __init__(self, log_util: LogUtil, api_key: Optional[str] = None, default_model: str = "gpt-4o"):
        self.log_util = log_util
        self.default_model = default_model
        self.client = AsyncOpenAI(api_key=api_key) if api_key else None

    async def generate(
        self,
        system_prompt: str,
        messages: List[Dict[str, str]],
        model: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 500
    ) -> Optional[str]:
        """
        Run one chat completion.

        Args:
            system_prompt: System instruction placed before the conversation
            messages: Conversation turns as {"role": "user"|"assistant", "content": ...}

        Returns:
            Generated text, or None if the model returned no content
        """
        if self.client is None:
            raise FlowServiceException(message="Text generation is not configured (OPENAI_API_KEY missing)")

        response = await self.client.chat.completions.create(
            model=model or self.default_model,
            messages=[{"role": "system", "content": system_prompt}, *messages],
            temperature=temperature,
            max_tokens=max_tokens
        )

        if not response.choices:
            return None
        return response.choices[0].message.content
