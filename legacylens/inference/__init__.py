"""
Inference service access.
"""

from legacylens.inference.gateway import InferenceGateway, parse_structured, strip_code_fences
from legacylens.inference.openai_gateway import OpenAIChatGateway

__all__ = [
    "InferenceGateway",
    "OpenAIChatGateway",
    "parse_structured",
    "strip_code_fences",
]
