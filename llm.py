"""
Thin wrapper around the OpenAI SDK for JSON-mode calls.

Both LLM steps in the pipeline (finding extraction and per-finding
synthesis) do the same thing: send a system + user prompt, ask for a
JSON object back, and validate it. This class holds that boilerplate
plus the timeout, and turns every failure into InferenceError so the
nodes have a single thing to catch.
"""

import asyncio
import logging

import openai
from openai import AsyncOpenAI

from config import LLM_MODEL, LLM_TEMPERATURE, LLM_TIMEOUT, OPENAI_API_KEY
from errors import InferenceError
from schemas import parse_json_response

logger = logging.getLogger(__name__)


class LLMClient:
    def __init__(self, client=None, model=LLM_MODEL, temperature=LLM_TEMPERATURE,
                 timeout=LLM_TIMEOUT):
        # max_retries is left to the SDK default; the timeout below caps
        # the whole call including retries
        self.client = client or AsyncOpenAI(api_key=OPENAI_API_KEY, timeout=timeout)
        self.model = model
        self.temperature = temperature
        self.timeout = timeout

    async def complete_json(self, system_prompt, user_prompt, response_model):
        """Runs one JSON-mode completion and returns a validated response_model.

        Raises InferenceError on timeouts, API errors, empty output and
        anything that doesn't validate.
        """
        try:
            response = await asyncio.wait_for(
                self.client.chat.completions.create(
                    model=self.model,
                    messages=[
                        {"role": "system", "content": system_prompt},
                        {"role": "user", "content": user_prompt},
                    ],
                    response_format={"type": "json_object"},
                    temperature=self.temperature,
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as exc:
            raise InferenceError(f"LLM call timed out after {self.timeout:g}s") from exc
        except openai.OpenAIError as exc:
            raise InferenceError(f"LLM call failed: {exc}") from exc

        if not response.choices:
            raise InferenceError("LLM returned no choices")
        content = response.choices[0].message.content
        logger.debug("LLM response (%s): %s", response_model.__name__, content)
        return parse_json_response(content, response_model)

    async def aclose(self):
        await self.client.close()


def default_llm_client():
    """LLMClient using the configured key, or None when no key is set."""
    if not OPENAI_API_KEY:
        logger.warning("OPENAI_API_KEY is not set; LLM steps will be skipped")
        return None
    return LLMClient()
