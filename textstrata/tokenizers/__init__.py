"""Tokenizers."""

from .base import Token, Tokenizer, TokenKind
from .builtin import (
    ByteTokenizer,
    CallableTokenizer,
    CharTokenizer,
    UnicodeTokenizer,
    WhitespaceTokenizer,
    get_tokenizer,
)

__all__ = [
    "Token",
    "Tokenizer",
    "TokenKind",
    "ByteTokenizer",
    "CallableTokenizer",
    "CharTokenizer",
    "UnicodeTokenizer",
    "WhitespaceTokenizer",
    "get_tokenizer",
]
