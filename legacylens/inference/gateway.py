"""
Inference gateway contract and structured-response decoding.
"""

from __future__ import annotations

import json
import re
from abc import ABC, abstractmethod
from typing import Any, TypeVar

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from legacylens.core.exceptions import MalformedResponseError, ResponseShapeError

T = TypeVar("T")

CODE_FENCE_RE = re.compile(r"^\s*```[\w+-]*[ \t]*\n?|\n?\s*```\s*$")


def strip_code_fences(text: str) -> str:
    """Remove a Markdown code fence wrapped around the whole text."""
    return CODE_FENCE_RE.sub("", text).strip()


def parse_structured(text: str, schema: Any) -> Any:
    """
    Decode an inference response into ``schema``.

    Args:
        text: Raw completion text, optionally wrapped in code fences
        schema: Any type accepted by pydantic's TypeAdapter

    Raises:
        MalformedResponseError: Cleaned text is not JSON
        ResponseShapeError: JSON does not validate against ``schema``
    """
    cleaned = strip_code_fences(text)

    try:
        payload = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise MalformedResponseError(str(e), raw_response=text) from e

    try:
        return TypeAdapter(schema).validate_python(payload)
    except PydanticValidationError as e:
        raise ResponseShapeError(
            f"{e.error_count()} validation error(s): {e.errors()[0]['msg']}",
            raw_response=text,
        ) from e


class InferenceGateway(ABC):
    """
    Abstract inference service.

    Implementations retry rate-limited calls internally; every other
    failure propagates to the caller.
    """

    @abstractmethod
    async def complete(self, system_prompt: str, user_prompt: str) -> str:
        """Return the plain-text completion for a system/user prompt pair."""
        ...

    async def complete_json(self, system_prompt: str, user_prompt: str, schema: type[T]) -> T:
        """
        Return the completion decoded as JSON and validated against ``schema``.

        Raises:
            UpstreamError: The service call failed
            MalformedResponseError: The response is not JSON
            ResponseShapeError: The JSON has the wrong shape
        """
        text = await self.complete(system_prompt, user_prompt)
        return parse_structured(text, schema)

    async def close(self) -> None:
        """Release transport resources."""
        return None
