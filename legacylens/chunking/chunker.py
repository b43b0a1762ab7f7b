"""Source chunker: partitions a source file into contiguous, re-assemblable modules.

Three strategies, chosen by language tag:

- brace languages: a definition boundary starts a chunk, which extends to the
  brace that closes its first block (string literals are skipped);
- paragraph languages (COBOL): paragraph headers start a chunk, capped at
  ``max_lines`` lines;
- line windows: fixed windows of ``max_lines`` lines, used for every other
  language and whenever the language pass finds nothing.

Chunks of one file, joined in order, always equal the file content.
"""

from __future__ import annotations

import re
from typing import Optional

from legacylens.core.config import ChunkerSettings
from legacylens.core.constants import (
    BRACE_LANGUAGES,
    DEFAULT_MAX_CHUNK_LINES,
    PARAGRAPH_LANGUAGES,
    ChunkStrategy,
)
from legacylens.core.logging import get_logger
from legacylens.domain.job import CodeModule

logger = get_logger(__name__)

_MODIFIERS = (
    r"(?:(?:export|default|public|private|protected|internal|static|abstract|final"
    r"|async|override|virtual|sealed|partial|readonly|synchronized)\s+)*"
)
_CONTROL_KEYWORDS = (
    r"(?:if|else|for|foreach|while|switch|catch|return|new|do|try|using|lock|throw|await|yield)\b"
)

DEFAULT_BOUNDARY_PATTERN = (
    r"^[ \t]*" + _MODIFIERS + r"(?:"
    # function / class / interface declarations
    r"(?:function\s*\*?|class|interface|enum|struct|trait|func|fn)\s+[A-Za-z_$][\w$]*"
    # const handler = function(...) / const handler = (...) =>
    r"|(?:const|let|var)\s+[A-Za-z_$][\w$]*\s*=\s*(?:async\s+)?"
    r"(?:function\b|\([^()]*\)\s*=>|[A-Za-z_$][\w$]*\s*=>)"
    # typed method: ReturnType name(params) {
    r"|(?!" + _CONTROL_KEYWORDS + r")[A-Za-z_$][\w$<>\[\],.?]*\s+[A-Za-z_$][\w$]*\s*"
    r"\([^;{}()]*\)\s*(?:throws\s+[\w.,\s]+)?\{"
    r")"
)

DEFAULT_PARAGRAPH_PATTERN = r"^ {6,}[A-Za-z0-9][\w-]*\.(?:\s|$)"

_NAME_PATTERNS = (
    re.compile(
        r"\b(?:function|class|interface|enum|struct|trait|func|def|sub|procedure)\s+\*?\s*([A-Za-z_$][\w$]*)",
        re.IGNORECASE,
    ),
    re.compile(r"\b(?:const|let|var)\s+([A-Za-z_$][\w$]*)\s*=\s*(?:async\s+)?(?:function\b|\(|[A-Za-z_$][\w$]*\s*=>)"),
    re.compile(
        r"^[ \t]*" + _MODIFIERS + r"(?!" + _CONTROL_KEYWORDS + r")"
        r"[A-Za-z_$][\w$<>\[\],.?]*\s+([A-Za-z_$][\w$]*)\s*\(",
        re.MULTILINE,
    ),
    re.compile(r"^ {6,}([A-Za-z0-9][\w-]*)\.(?:\s|$)", re.MULTILINE),
)

_QUOTES = frozenset("\"'`")
_UNSAFE_PATH_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def find_block_end(content: str, start: int) -> int:
    """Return the offset just past the brace closing the first block at or after ``start``.

    Braces inside string or character literals are ignored; a quote preceded by a
    backslash does not open or close a literal. When the block never closes, the
    end of the content is returned.
    """
    depth = 0
    opened = False
    quote: Optional[str] = None

    for i in range(start, len(content)):
        ch = content[i]

        if ch in _QUOTES and (i == 0 or content[i - 1] != "\\"):
            if quote is None:
                quote = ch
            elif ch == quote:
                quote = None
            continue

        if quote is not None:
            continue

        if ch == "{":
            depth += 1
            opened = True
        elif ch == "}" and opened:
            depth -= 1
            if depth == 0:
                return i + 1

    return len(content)


def extract_function_name(code: str) -> Optional[str]:
    """Best-effort name of the first function, class or paragraph in ``code``."""
    best: Optional[re.Match[str]] = None
    for pattern in _NAME_PATTERNS:
        match = pattern.search(code)
        if match and (best is None or match.start() < best.start()):
            best = match
    return best.group(1) if best else None


def sanitize_path(file_path: str) -> str:
    """Filesystem-safe form of a file path, used inside module IDs."""
    return _UNSAFE_PATH_CHARS.sub("-", file_path).strip("-") or "file"


def make_module_id(job_id: str, file_path: str, index: int) -> str:
    """Module ID unique within a job: job, sanitized path and chunk index."""
    return f"{job_id}_{sanitize_path(file_path)}_{index}"


def normalize_language(language: str) -> str:
    """Language tag as a lowercase extension without the leading dot."""
    return language.strip().lower().lstrip(".")


class SourceChunker:
    """Split source text into ordered chunks and wrap them as CodeModules."""

    def __init__(
        self,
        max_lines: int = DEFAULT_MAX_CHUNK_LINES,
        boundary_pattern: Optional[str] = None,
        paragraph_pattern: Optional[str] = None,
    ) -> None:
        if max_lines < 1:
            raise ValueError("max_lines must be at least 1")
        self.max_lines = max_lines
        self._boundary_re = re.compile(boundary_pattern or DEFAULT_BOUNDARY_PATTERN, re.MULTILINE)
        self._paragraph_re = re.compile(paragraph_pattern or DEFAULT_PARAGRAPH_PATTERN)

    @classmethod
    def from_settings(cls, chunker_settings: ChunkerSettings) -> "SourceChunker":
        return cls(
            max_lines=chunker_settings.max_chunk_lines,
            boundary_pattern=chunker_settings.boundary_pattern,
            paragraph_pattern=chunker_settings.paragraph_pattern,
        )

    def chunk_file(
        self,
        job_id: str,
        file_path: str,
        content: str,
        language: str,
    ) -> list[CodeModule]:
        """Partition one file into CodeModules in emission order.

        Args:
            job_id: Owning job, used as the module ID prefix
            file_path: Path of the file relative to the ingested root
            content: Full file content
            language: Language tag (file extension)

        Returns:
            Modules whose raw_code, concatenated, equals ``content``
        """
        chunks, strategy = self.split(content, language)

        modules = [
            CodeModule(
                module_id=make_module_id(job_id, file_path, index),
                file_path=file_path,
                language=normalize_language(language),
                function_name=extract_function_name(text),
                raw_code=text,
            )
            for index, text in enumerate(chunks)
        ]

        logger.debug(
            "Chunked file",
            file_path=file_path,
            language=language,
            strategy=strategy.value,
            chunks=len(modules),
        )
        return modules

    def split(self, content: str, language: str) -> tuple[list[str], ChunkStrategy]:
        """Split raw text, returning the chunks and the strategy that produced them."""
        if not content:
            return [], ChunkStrategy.LINE_WINDOW

        tag = normalize_language(language)
        if tag in BRACE_LANGUAGES:
            chunks = self.split_brace_blocks(content)
            if chunks:
                return chunks, ChunkStrategy.BRACE
        elif tag in PARAGRAPH_LANGUAGES:
            chunks = self.split_paragraphs(content)
            if chunks:
                return chunks, ChunkStrategy.PARAGRAPH

        return self.split_line_windows(content), ChunkStrategy.LINE_WINDOW

    def split_brace_blocks(self, content: str) -> list[str]:
        """Chunk at definition boundaries, each chunk ending at its block's closing brace.

        Text before the first boundary is its own chunk (unless it is only
        whitespace, which joins the first block). Text between two blocks opens
        the later chunk, and text after the last block closes the final one.
        Boundaries inside an already emitted block are skipped.
        """
        boundaries = [match.start() for match in self._boundary_re.finditer(content)]
        if not boundaries:
            return []

        chunks: list[str] = []
        pos = 0

        first = boundaries[0]
        if first > 0 and content[:first].strip():
            chunks.append(content[:first])
            pos = first

        for boundary in boundaries:
            if boundary < pos:
                continue
            end = find_block_end(content, boundary)
            chunks.append(content[pos:end])
            pos = end

        if pos < len(content):
            chunks[-1] += content[pos:]

        return chunks

    def split_paragraphs(self, content: str) -> list[str]:
        """Chunk at paragraph headers, force-closing any chunk at ``max_lines`` lines."""
        lines = content.splitlines(keepends=True)
        if not any(self._paragraph_re.match(line) for line in lines):
            return []

        chunks: list[str] = []
        current: list[str] = []

        for line in lines:
            if current and (self._paragraph_re.match(line) or len(current) >= self.max_lines):
                chunks.append("".join(current))
                current = []
            current.append(line)

        if current:
            chunks.append("".join(current))

        return chunks

    def split_line_windows(self, content: str) -> list[str]:
        """Fixed windows of at most ``max_lines`` lines."""
        lines = content.splitlines(keepends=True)
        return [
            "".join(lines[i : i + self.max_lines])
            for i in range(0, len(lines), self.max_lines)
        ]


_default_chunker = SourceChunker()


def chunk_file(job_id: str, file_path: str, content: str, language: str) -> list[CodeModule]:
    """Chunk a file with the default chunker settings."""
    return _default_chunker.chunk_file(job_id, file_path, content, language)
