"""Built-in tokenizers and the factory that picks one from configuration."""

from typing import Callable

import regex

from ..config import TokenizationConfig
from .base import Token, Tokenizer, TokenKind

_REGEX_FLAGS = regex.VERSION1 | regex.UNICODE

_GRAPHEME_PATTERN = regex.compile(r"\X", _REGEX_FLAGS)
_WORD_PATTERN = regex.compile(r"\p{L}+|\p{Nd}+|[^\p{L}\p{Nd}\s]+", _REGEX_FLAGS)


class WhitespaceTokenizer(Tokenizer):
    """Split on runs of whitespace."""

    def split(self, text: str) -> list[Token]:
        return text.split()


class UnicodeTokenizer(Tokenizer):
    """Letter runs, digit runs and symbol runs, by Unicode category."""

    def split(self, text: str) -> list[Token]:
        return _WORD_PATTERN.findall(text)


class CharTokenizer(Tokenizer):
    """One token per grapheme cluster."""

    level = "character"

    def split(self, text: str) -> list[Token]:
        return _GRAPHEME_PATTERN.findall(text)

    def character_lengths(self, word: str) -> list[int]:
        return [1] * len(self.split(word))


class ByteTokenizer(Tokenizer):
    """One token per UTF-8 byte; tokens are ints 0-255."""

    kind = TokenKind.BYTE
    level = "byte"

    def split(self, text: str) -> list[Token]:
        return list(text.encode("utf-8"))

    def character_lengths(self, word: str) -> list[int]:
        return [len(g.encode("utf-8")) for g in _GRAPHEME_PATTERN.findall(word)]


class CallableTokenizer(Tokenizer):
    """Wrap a user function ``str -> list[str]``."""

    def __init__(self, func: Callable[[str], list], level: str = "word",
                 preserve_empty_tokens: bool = False):
        super().__init__(preserve_empty_tokens=preserve_empty_tokens)
        self.func = func
        self.level = level

    def split(self, text: str) -> list[Token]:
        return [str(t) for t in self.func(text)]

    def character_lengths(self, word: str) -> list[int]:
        if self.level == "character":
            return [1] * len(self.tokenize(word))
        return super().character_lengths(word)


_BUILTIN = {
    "whitespace": WhitespaceTokenizer,
    "unicode": UnicodeTokenizer,
    "char": CharTokenizer,
    "byte": ByteTokenizer,
}


def get_tokenizer(config: TokenizationConfig) -> Tokenizer:
    """
    Create the tokenizer named by a configuration.

    Args:
        config: Tokenization configuration

    Returns:
        Tokenizer instance

    Raises:
        ValueError: If the tokenizer name is unknown
    """
    if config.is_custom:
        return CallableTokenizer(
            config.tokenizer,
            level=config.token_level,
            preserve_empty_tokens=config.preserve_empty_tokens,
        )
    if config.tokenizer not in _BUILTIN:
        raise ValueError(f"Unknown tokenizer: {config.tokenizer}")
    return _BUILTIN[config.tokenizer](preserve_empty_tokens=config.preserve_empty_tokens)
