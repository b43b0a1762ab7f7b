"""
Indexing service: related-module lookup used to enrich roadmap and refactor prompts.
"""

import re
from abc import ABC, abstractmethod

from legacylens.core.exceptions import IndexingError
from legacylens.core.logging import get_logger
from legacylens.domain.job import CodeModule

logger = get_logger(__name__)

_TOKEN_RE = re.compile(r"[a-z0-9]+")
_STOPWORDS = frozenset(
    {"a", "an", "and", "the", "of", "to", "for", "in", "on", "by", "with", "is", "it", "this", "that", "or"}
)


def tokenize(text: str) -> set[str]:
    """Lowercase word tokens without stopwords and one-letter words."""
    return {t for t in _TOKEN_RE.findall(text.lower()) if len(t) > 1 and t not in _STOPWORDS}


class IndexingService(ABC):
    """Abstract search index over analyzed modules."""

    @abstractmethod
    async def index(self, module: CodeModule) -> None:
        """Add or replace a module in the index."""
        ...

    @abstractmethod
    async def search_related(self, module_id: str, top_k: int = 3) -> list[CodeModule]:
        """
        Return up to ``top_k`` modules related to ``module_id``, best first.

        Raises:
            IndexingError: The module is not indexed or the index failed
        """
        ...


class InMemoryIndex(IndexingService):
    """
    Keyword index ranking modules by shared intent and domain-hint tokens.
    """

    def __init__(self) -> None:
        self._modules: dict[str, CodeModule] = {}
        self._tokens: dict[str, set[str]] = {}

    async def index(self, module: CodeModule) -> None:
        self._modules[module.module_id] = module
        self._tokens[module.module_id] = tokenize(
            " ".join([module.intent, *module.domain_hints, module.function_name or ""])
        )
        logger.debug("Module indexed", module_id=module.module_id)

    async def search_related(self, module_id: str, top_k: int = 3) -> list[CodeModule]:
        source_tokens = self._tokens.get(module_id)
        if source_tokens is None:
            raise IndexingError("Module is not indexed", module_id=module_id)

        scored = []
        for candidate_id, tokens in self._tokens.items():
            if candidate_id == module_id:
                continue
            overlap = len(source_tokens & tokens)
            if overlap:
                scored.append((overlap, candidate_id))

        # Highest overlap first; ties broken by module ID for stable output
        scored.sort(key=lambda item: (-item[0], item[1]))
        return [self._modules[candidate_id] for _, candidate_id in scored[:top_k]]

    def __len__(self) -> int:
        return len(self._modules)
