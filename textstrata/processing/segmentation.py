"""Tokenization and offset recording over cleaned chunks of text."""

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional, Union

import regex

from ..config import PreprocessConfig
from ..models import TextChunk
from ..tokenizers import Token, Tokenizer, get_tokenizer
from .cleaning import TextCleaner

logger = logging.getLogger(__name__)

PARAGRAPH_SPLIT = regex.compile(r"\n{2,}")
SENTENCE_SPLIT = regex.compile(r"(?<=[.!?])\s+")
SENTENCE_END = regex.compile(r"[.!?]\s*\Z")


class _OffsetRecorder:
    """Offset vector under construction: unit starts beginning with 1."""

    def __init__(self):
        self.values = [1]

    def close(self, next_start: int) -> None:
        if self.values[-1] != next_start:
            self.values.append(next_start)

    def finish(self, n_tokens: int) -> list[int]:
        self.close(n_tokens + 1)
        return self.values


@dataclass
class SegmentationResult:
    """Tokens and offsets produced from a batch of chunks."""

    tokens: list = field(default_factory=list)
    offsets: dict = field(default_factory=dict)
    open_levels: frozenset = frozenset()


def as_chunks(chunks: Iterable[Union[TextChunk, str]]) -> list[TextChunk]:
    """Plain strings are whole documents."""
    return [c if isinstance(c, TextChunk) else TextChunk(c) for c in chunks]


class Segmenter:
    """
    Clean, tokenize and segment chunks of text into tokens plus offsets.

    Paragraphs are separated by blank lines, sentences end after ``.``,
    ``!`` or ``?`` followed by whitespace. Punctuation removal runs per
    sentence, after the boundaries have been found. Units still open at
    the end of a chunk that does not end its paragraph or document are
    left open and reported in :attr:`SegmentationResult.open_levels`.
    """

    def __init__(
        self,
        config: PreprocessConfig,
        tokenizer: Optional[Tokenizer] = None,
        cleaner: Optional[TextCleaner] = None,
    ):
        self.config = config
        self.tokenizer = tokenizer or get_tokenizer(config.tokenization)
        self.cleaner = cleaner or TextCleaner(config.cleaning)
        self.recorded = config.segmentation.recorded_levels

    def iter_sentences(self, chunk: TextChunk):
        """
        Yield ``(sentence, closes_sentence, closes_paragraph)`` for one chunk.

        ``sentence`` is the cleaned sentence text ready for tokenization.
        """
        text = self.cleaner.normalize(chunk.text)
        paragraphs = [p for p in PARAGRAPH_SPLIT.split(text) if p.strip()]
        paragraph_open = not (chunk.ends_paragraph or chunk.ends_document)

        for p_idx, paragraph in enumerate(paragraphs):
            last_paragraph = p_idx == len(paragraphs) - 1
            sentences = [s for s in SENTENCE_SPLIT.split(paragraph) if s.strip()]
            for s_idx, sentence in enumerate(sentences):
                last_sentence = last_paragraph and s_idx == len(sentences) - 1
                closes_sentence = not (
                    last_sentence and paragraph_open and not SENTENCE_END.search(sentence)
                )
                closes_paragraph = s_idx == len(sentences) - 1 and not (
                    last_paragraph and paragraph_open
                )
                yield self.cleaner.finalize(sentence), closes_sentence, closes_paragraph

    def open_levels(self, chunk: TextChunk) -> frozenset:
        """Levels whose last unit continues past the end of ``chunk``."""
        levels = set()
        if not chunk.ends_document or "document" not in self.recorded:
            levels.add("document")
        if not (chunk.ends_paragraph or chunk.ends_document):
            levels.add("paragraph")
            text = self.cleaner.normalize(chunk.text)
            if text.strip() and not SENTENCE_END.search(text):
                levels.add("sentence")
        # an unrecorded document level is one implicit document spanning every chunk
        return frozenset(lvl for lvl in levels if lvl in self.recorded or lvl == "document")

    def _push_words(self, sentence: str, tokens: list, recorders: dict) -> None:
        tokenizer = self.tokenizer
        if not tokenizer.splits_words:
            for token in tokenizer.tokenize(sentence):
                tokens.append(token)
                if "word" in recorders:
                    recorders["word"].close(len(tokens) + 1)
            return

        level = tokenizer.level
        for word in sentence.split():
            start = len(tokens)
            word_tokens = tokenizer.tokenize(word)
            tokens.extend(word_tokens)
            if level in recorders:
                for pos in range(start + 2, len(tokens) + 2):
                    recorders[level].close(pos)
            if level == "byte" and "character" in recorders:
                pos = start
                for length in tokenizer.character_lengths(word):
                    pos += length
                    recorders["character"].close(pos + 1)
            if "word" in recorders:
                recorders["word"].close(len(tokens) + 1)

    def segment(self, chunks: Iterable[Union[TextChunk, str]]) -> SegmentationResult:
        """
        Tokenize chunks and record the configured offset vectors.

        Args:
            chunks: TextChunk objects or plain strings (whole documents).

        Returns:
            SegmentationResult with tokens, offsets per recorded level and
            the levels left open by the last chunk.
        """
        chunks = as_chunks(chunks)
        tokens: list[Token] = []
        recorders = {level: _OffsetRecorder() for level in self.recorded}

        for chunk in chunks:
            for sentence, closes_sentence, closes_paragraph in self.iter_sentences(chunk):
                self._push_words(sentence, tokens, recorders)
                if closes_sentence and "sentence" in recorders:
                    recorders["sentence"].close(len(tokens) + 1)
                if closes_paragraph and "paragraph" in recorders:
                    recorders["paragraph"].close(len(tokens) + 1)
            if chunk.ends_document and "document" in recorders:
                recorders["document"].close(len(tokens) + 1)

        offsets = {level: rec.finish(len(tokens)) for level, rec in recorders.items()}
        open_levels = self.open_levels(chunks[-1]) if chunks else frozenset()
        logger.debug(f"Segmented {len(chunks)} chunk(s) into {len(tokens)} tokens")
        return SegmentationResult(tokens=tokens, offsets=offsets, open_levels=open_levels)

    def iter_tokens(self, chunks: Iterable[Union[TextChunk, str]]):
        """Yield tokens without recording offsets (vocabulary counting)."""
        for chunk in as_chunks(chunks):
            for sentence, _, _ in self.iter_sentences(chunk):
                if self.tokenizer.splits_words:
                    for word in sentence.split():
                        yield from self.tokenizer.tokenize(word)
                else:
                    yield from self.tokenizer.tokenize(sentence)


def tokenize_and_segment(
    chunks: Iterable[Union[TextChunk, str]], config: PreprocessConfig
) -> tuple[list, dict]:
    """
    Tokenize chunks and record offsets.

    Args:
        chunks: TextChunk objects or plain strings (whole documents).
        config: Pipeline configuration.

    Returns:
        ``(tokens, offsets)`` where ``offsets`` maps level name to a
        ``[1, ..., n + 1]`` style list.
    """
    result = Segmenter(config).segment(chunks)
    return result.tokens, result.offsets
