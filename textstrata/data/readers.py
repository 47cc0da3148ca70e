"""Chunk sources: loading raw documents and cutting them into bounded chunks."""

import logging
from pathlib import Path
from typing import Iterable, Iterator, Optional, Union

import regex

from ..models import TextChunk

logger = logging.getLogger(__name__)

Source = Union[str, Path]

_EOL = regex.compile(r"\r\n|\r")
_PARAGRAPH_BREAK = regex.compile(r"\n[^\S\n]*\n\s*")
_WORD = regex.compile(r"\S+")
_GAP = regex.compile(rb"\s+(?=\S)")


def as_file_path(source: Source) -> Optional[Path]:
    """Path for a source that names an existing filesystem entry, else None."""
    if isinstance(source, Path):
        if not source.exists():
            raise FileNotFoundError(f"Source file not found: {source}")
        return source
    if "\n" in source or len(source) > 4096:
        return None
    try:
        path = Path(source)
        return path if path.exists() else None
    except OSError:
        return None


def read_text_file(path: Union[str, Path]) -> str:
    """Read a UTF-8 file, normalizing line endings to LF."""
    with open(path, "r", encoding="utf-8", newline="") as f:
        return _EOL.sub("\n", f.read())


def iter_sources(sources: Union[Source, Iterable[Source]]) -> Iterator[str]:
    """
    Yield one document per source, lazily.

    Existing file paths are read as UTF-8, directories are skipped with a
    warning, and any other string is taken as raw text.
    """
    if isinstance(sources, (str, Path)):
        sources = [sources]
    for source in sources:
        path = as_file_path(source)
        if path is None:
            yield _EOL.sub("\n", source)
        elif path.is_dir():
            logger.warning(f"Ignoring directory: {path}")
        else:
            yield read_text_file(path)


def load_sources(sources: Union[Source, Iterable[Source]]) -> list[str]:
    """
    Load every source into memory.

    Args:
        sources: A path, a raw string, or an iterable of them.

    Returns:
        List of documents in input order.
    """
    docs = list(iter_sources(sources))
    logger.info(f"Loaded {len(docs)} document(s)")
    return docs


def _pieces(doc: str, chunk_tokens: int, preserve_paragraphs: bool):
    """Split a document into ``(text, n_words, ends_paragraph)`` pieces."""
    start = 0
    spans = []
    for m in _PARAGRAPH_BREAK.finditer(doc):
        spans.append(doc[start:m.start()])
        start = m.end()
    spans.append(doc[start:])

    for paragraph in spans:
        words = list(_WORD.finditer(paragraph))
        if not words:
            continue
        for i in range(0, len(words), chunk_tokens):
            group = words[i:i + chunk_tokens]
            last = i + chunk_tokens >= len(words)
            end = len(paragraph) if last else words[i + chunk_tokens].start()
            begin = 0 if i == 0 else group[0].start()
            yield paragraph[begin:end], len(group), last and preserve_paragraphs


def chunk_documents(
    docs: Iterable[str],
    chunk_tokens: int,
    preserve_paragraphs: bool = True,
) -> Iterator[list[TextChunk]]:
    """
    Group documents into batches of roughly ``chunk_tokens`` whitespace tokens.

    Documents are cut at paragraph breaks when they do not fit; a single
    paragraph longer than the budget is cut between words. Every piece
    that does not finish its document is tagged ``ends_document=False``.

    Args:
        docs: Documents in order.
        chunk_tokens: Token budget per batch.
        preserve_paragraphs: False when cleaning collapses paragraph breaks;
            cuts are then never treated as paragraph ends.

    Yields:
        Lists of TextChunk.
    """
    batch: list[TextChunk] = []
    used = 0

    for doc in docs:
        parts: list[str] = []
        ends_paragraph = True
        for text, cost, piece_ends_paragraph in _pieces(doc, chunk_tokens, preserve_paragraphs):
            if used + cost > chunk_tokens and (batch or parts):
                if parts:
                    batch.append(
                        TextChunk("\n\n".join(parts), ends_document=False,
                                  ends_paragraph=ends_paragraph)
                    )
                yield batch
                batch, used, parts = [], 0, []
            parts.append(text)
            ends_paragraph = piece_ends_paragraph
            used += cost
        batch.append(TextChunk("\n\n".join(parts), ends_document=True))

    if batch:
        yield batch


def _cut_position(block: bytes, prefer_paragraph: bool) -> tuple[int, bool]:
    """Byte index to cut ``block`` at, and whether the cut ends a paragraph."""
    # cut only where a word starts, so no whitespace run straddles two blocks
    gaps = list(_GAP.finditer(block))
    if gaps:
        if prefer_paragraph:
            for m in reversed(gaps):
                if m.group().count(b"\n") >= 2:
                    return m.end(), True
        return gaps[-1].end(), False
    # no whitespace at all: back off to a UTF-8 sequence start
    idx = len(block)
    while idx > 0 and (block[idx - 1] & 0b1100_0000) == 0b1000_0000:
        idx -= 1
    if idx > 0 and block[idx - 1] >= 0b1100_0000:
        idx -= 1
    return (idx if idx > 0 else len(block)), False


def stream_file_chunks(
    paths: Union[Source, Iterable[Source]],
    chunk_bytes: int = 1 << 20,
    preserve_paragraphs: bool = True,
) -> Iterator[TextChunk]:
    """
    Read files in bounded blocks without splitting UTF-8 sequences.

    Blocks are cut after the last blank line when there is one, otherwise
    after the last whitespace byte. The final block of every file is
    tagged ``ends_document=True``. Directories are skipped with a warning.

    Args:
        paths: File path or iterable of paths.
        chunk_bytes: Upper bound on the bytes read per block.
        preserve_paragraphs: See :func:`chunk_documents`.

    Yields:
        TextChunk per block.
    """
    if isinstance(paths, (str, Path)):
        paths = [paths]
    for path in paths:
        path = Path(path)
        if path.is_dir():
            logger.warning(f"Ignoring directory: {path}")
            continue
        with open(path, "rb") as f:
            carry = b""
            while True:
                block = f.read(chunk_bytes)
                if not block:
                    break
                data = carry + block
                cut, ends_paragraph = _cut_position(data, preserve_paragraphs)
                text = _EOL.sub("\n", data[:cut].decode("utf-8"))
                carry = data[cut:]
                yield TextChunk(text, ends_document=False, ends_paragraph=ends_paragraph)
            yield TextChunk(_EOL.sub("\n", carry.decode("utf-8")), ends_document=True)
        logger.debug(f"Finished streaming {path}")
