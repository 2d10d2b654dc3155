"""Gemini client with Google Search grounding for grant cross-referencing."""

from typing import Optional, Protocol

import google.generativeai as genai
from google.generativeai.types.generation_types import BlockedPromptException
from loguru import logger
from tenacity import (
    retry,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from grantflow.config.settings import Settings, settings as default_settings


class CrossReferenceResponder(Protocol):
    """Anything that can answer a cross-reference prompt with raw text.

    The production implementation is GeminiSearchClient; tests pass fakes
    returning canned JSON strings.
    """

    async def respond(self, prompt: str, system_instruction: str) -> str:
        ...


class GeminiSearchClient:
    """
    Google Gemini client with search grounding and retry on transient errors.

    The model researches the grant on the open web (google_search_retrieval
    tool) and answers in text. Blocked prompts are not retried.

    Attributes:
        model_name: Gemini model identifier
        timeout: Per-call timeout in seconds
        temperature: Sampling temperature (0.0 keeps re-runs consistent)
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model_name: Optional[str] = None,
        timeout: Optional[float] = None,
        temperature: float = 0.0,
        cfg: Optional[Settings] = None,
    ):
        """
        Initialize Gemini client.

        Args:
            api_key: Gemini API key (defaults to settings)
            model_name: Model identifier (defaults to settings)
            timeout: Per-call timeout in seconds (defaults to settings)
            temperature: Sampling temperature
            cfg: Settings object to read defaults from

        Raises:
            ConfigurationError: If no API key is configured
        """
        cfg = cfg or default_settings
        if api_key is None:
            cfg.require("gemini_api_key")
            api_key = cfg.gemini_api_key

        genai.configure(api_key=api_key)

        self.model_name = model_name or cfg.gemini_model
        self.timeout = timeout or cfg.crossref_timeout_seconds
        self.temperature = temperature

        self.logger = logger.bind(component="GeminiSearchClient")
        self.logger.info(f"Gemini search client initialized with model {self.model_name}")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_not_exception_type(BlockedPromptException),
        reraise=True,
    )
    async def respond(self, prompt: str, system_instruction: str) -> str:
        """
        Send a grounded prompt and return the reply text.

        Args:
            prompt: User prompt with the grant's stated facts
            system_instruction: Verification specialist instructions

        Returns:
            Raw reply text (expected to contain a JSON object)

        Raises:
            BlockedPromptException: If the prompt violates safety policies
            Exception: For other API errors after retries are exhausted
        """
        model = genai.GenerativeModel(
            self.model_name,
            system_instruction=system_instruction,
            tools="google_search_retrieval",
        )
        try:
            response = await model.generate_content_async(
                prompt,
                generation_config=genai.types.GenerationConfig(
                    temperature=self.temperature,
                ),
                request_options={"timeout": self.timeout},
            )
        except BlockedPromptException as e:
            self.logger.error(f"Prompt blocked by safety filters: {e}")
            raise
        return response.text
