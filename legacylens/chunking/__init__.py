"""
Source chunking.
"""

from legacylens.chunking.chunker import (
    SourceChunker,
    chunk_file,
    extract_function_name,
    find_block_end,
    make_module_id,
    sanitize_path,
)

__all__ = [
    "SourceChunker",
    "chunk_file",
    "extract_function_name",
    "find_block_end",
    "make_module_id",
    "sanitize_path",
]
