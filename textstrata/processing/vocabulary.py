"""Vocabulary building: frequency counting and deterministic id assignment."""

import logging
from collections import Counter
from typing import Iterable, Mapping, Optional, Union

from tqdm import tqdm

from ..config import PreprocessConfig
from ..models import TextChunk, Vocabulary
from ..store import token_key
from ..tokenizers import Token
from .segmentation import Segmenter

logger = logging.getLogger(__name__)

SENTENCE_SPECIALS = {"bos": "<BOS>", "eos": "<EOS>"}


def count_tokens(tokens: Iterable[Token]) -> Counter:
    """Frequency of every token's vocabulary string."""
    return Counter(token_key(t) for t in tokens)


def count_token_frequencies(
    batches: Iterable[Iterable[Union[TextChunk, str]]],
    config: PreprocessConfig,
    show_progress: bool = False,
) -> Counter:
    """
    Count token frequencies over a stream of chunk batches.

    Only the counter is kept in memory; batches are consumed one at a time.

    Args:
        batches: Iterable of chunk batches (lists of TextChunk or strings).
        config: Pipeline configuration (cleaning and tokenizer).
        show_progress: Show a progress bar over batches.

    Returns:
        Counter mapping vocabulary strings to frequencies.
    """
    segmenter = Segmenter(config)
    counts: Counter = Counter()
    for batch in tqdm(batches, desc="Counting tokens", unit="chunk", disable=not show_progress):
        counts.update(token_key(t) for t in segmenter.iter_tokens(batch))
    logger.debug(f"Counted {len(counts)} distinct tokens")
    return counts


def build_vocabulary(
    tokens_or_counts: Union[Iterable[Token], Mapping[str, int]],
    config: Optional[PreprocessConfig] = None,
) -> Vocabulary:
    """
    Build an immutable vocabulary.

    Special tokens come first, ordered by their symbol name; ``bos`` and
    ``eos`` are added when sentence offsets are recorded and the caller has
    not supplied them. Corpus tokens whose frequency reaches
    ``minimum_token_frequency`` follow in lexicographic order.

    Args:
        tokens_or_counts: Token stream, or a mapping token string -> frequency.
        config: Pipeline configuration (defaults when omitted).

    Returns:
        Vocabulary with 1-based dense ids.
    """
    config = config or PreprocessConfig()
    if isinstance(tokens_or_counts, Mapping):
        counts = Counter({str(k): int(v) for k, v in tokens_or_counts.items()})
    else:
        counts = count_tokens(tokens_or_counts)

    specials = dict(config.vocabulary.special_tokens)
    if config.segmentation.record_sentence_offsets:
        for symbol, token in SENTENCE_SPECIALS.items():
            specials.setdefault(symbol, token)

    id_to_token: list[str] = []
    token_to_id: dict[str, int] = {}
    for symbol in sorted(specials):
        token = specials[symbol]
        if token not in token_to_id:
            id_to_token.append(token)
            token_to_id[token] = len(id_to_token)

    min_freq = config.vocabulary.minimum_token_frequency
    for token in sorted(t for t, f in counts.items() if f >= min_freq):
        if token not in token_to_id:
            id_to_token.append(token)
            token_to_id[token] = len(id_to_token)

    vocabulary = Vocabulary(
        id_to_token=id_to_token,
        token_to_id=token_to_id,
        frequencies=[counts.get(t, 0) for t in id_to_token],
        specials={symbol: token_to_id[token] for symbol, token in specials.items()},
    )
    logger.info(
        f"Built vocabulary: {len(vocabulary)} tokens "
        f"({len(specials)} special, min frequency {min_freq})"
    )
    return vocabulary
