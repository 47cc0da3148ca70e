"""Cleaning, tokenization/segmentation and vocabulary building."""

from .cleaning import TextCleaner, clean_documents, clean_text
from .segmentation import SegmentationResult, Segmenter, tokenize_and_segment
from .vocabulary import build_vocabulary, count_token_frequencies, count_tokens

__all__ = [
    "TextCleaner",
    "clean_documents",
    "clean_text",
    "SegmentationResult",
    "Segmenter",
    "tokenize_and_segment",
    "build_vocabulary",
    "count_token_frequencies",
    "count_tokens",
]
