"""LLM Client for Groq API integration."""
import asyncio
import time
from dataclasses import dataclass
from typing import Optional, Dict, Any, NoReturn
from groq import AsyncGroq
from groq import RateLimitError, AuthenticationError, APIError, APITimeoutError
import logging

from config import (
    GROQ_API_KEY,
    CHAT_MODEL,
    CHAT_TEMPERATURE,
    CHAT_MAX_TOKENS,
    REMOTE_TIMEOUT_SECONDS,
)
from services.errors import RemoteServiceError, ServiceError

logger = logging.getLogger(__name__)

# Structured error information from LLM operations
LLMError = ServiceError


@dataclass
class LLMResponse:
    """Response from LLM generation."""
    text: str
    tokens_input: int
    tokens_output: int
    latency_ms: int
    model_used: str


class LLMClientError(RemoteServiceError):
    """Generation call failed."""


class LLMClient:
    """Client for interfacing with Groq API for text generation."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = CHAT_MODEL,
        timeout: float = REMOTE_TIMEOUT_SECONDS
    ):
        """
        Initialize LLM client with Groq API key.

        Args:
            api_key: Groq API key (defaults to GROQ_API_KEY from environment)
            model: Chat model name
            timeout: Upper bound in seconds for a single generation call
        """
        self.api_key = api_key or GROQ_API_KEY
        if not self.api_key:
            raise ValueError("GROQ_API_KEY must be provided or set in environment")

        self.model = model
        self.timeout = timeout
        self.client = AsyncGroq(api_key=self.api_key, timeout=timeout)
        logger.info(f"LLMClient initialized successfully (model={model})")

    async def generate(
        self,
        prompt: str,
        max_tokens: int = CHAT_MAX_TOKENS,
        temperature: float = CHAT_TEMPERATURE
    ) -> LLMResponse:
        """
        Generate response using Groq API.

        Args:
            prompt: Complete prompt with history and the new input
            max_tokens: Maximum tokens to generate
            temperature: Sampling temperature

        Returns:
            LLMResponse with text, token counts, and latency

        Raises:
            LLMClientError: Structured error with code, message, and details
        """
        start_time = time.time()

        try:
            logger.debug(f"Generating response with model: {self.model}")

            response = await asyncio.wait_for(
                self.client.chat.completions.create(
                    model=self.model,
                    messages=[
                        {
                            "role": "user",
                            "content": prompt
                        }
                    ],
                    max_tokens=max_tokens,
                    temperature=temperature
                ),
                timeout=self.timeout
            )

            latency_ms = int((time.time() - start_time) * 1000)

            text = response.choices[0].message.content or ""
            tokens_input = response.usage.prompt_tokens
            tokens_output = response.usage.completion_tokens

            logger.info(
                f"Generated response: model={self.model}, "
                f"input_tokens={tokens_input}, output_tokens={tokens_output}, "
                f"latency={latency_ms}ms"
            )

            return LLMResponse(
                text=text,
                tokens_input=tokens_input,
                tokens_output=tokens_output,
                latency_ms=latency_ms,
                model_used=self.model
            )

        except RateLimitError as e:
            self._fail(
                "RATE_LIMIT_ERROR",
                "Rate limit exceeded. Please try again in a few moments.",
                start_time, e, retry_after=60
            )
        except AuthenticationError as e:
            self._fail(
                "AUTHENTICATION_ERROR",
                "Authentication failed. Please check your API key.",
                start_time, e
            )
        except (APITimeoutError, asyncio.TimeoutError) as e:
            self._fail("TIMEOUT_ERROR", "Request timed out. Please try again.", start_time, e)
        except APIError as e:
            self._fail("API_ERROR", f"Groq API error: {str(e)}", start_time, e)
        except Exception as e:
            self._fail(
                "UNKNOWN_ERROR",
                f"Unexpected error during generation: {str(e)}",
                start_time, e, error_type=type(e).__name__
            )

    def _fail(
        self,
        code: str,
        message: str,
        start_time: float,
        original: Exception,
        **extra: Any
    ) -> NoReturn:
        """Log a failed generation and raise it as LLMClientError."""
        latency_ms = int((time.time() - start_time) * 1000)
        details: Dict[str, Any] = {
            "model": self.model,
            "latency_ms": latency_ms,
            "original_error": str(original),
            **extra
        }
        logger.error(
            f"Generation failed [{code}]: model={self.model}, latency={latency_ms}ms, error={original}",
            exc_info=True,
            extra={"error_code": code, "error_details": details}
        )
        raise LLMClientError(message, code=code, details=details) from original

    @staticmethod
    def build_prompt(query: str, conversation_history: Optional[str] = None) -> str:
        """
        Build prompt template with conversation history and the new input.

        Args:
            query: Human input for this turn
            conversation_history: Rendered history, oldest exchange first

        Returns:
            Complete prompt string
        """
        return f"""You are a helpful, friendly assistant that provides clear and concise answers.
Be conversational and engaging while maintaining accuracy and helpfulness.
If unsure, admit it rather than guessing.

Current conversation:
{conversation_history or ""}
Human: {query}
AI:"""
