"""Base class for tokenizers."""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Union

Token = Union[str, int]


class TokenKind(Enum):
    """Element type a tokenizer produces."""

    STRING = "string"
    BYTE = "byte"


class Tokenizer(ABC):
    """
    Base class for tokenizers.

    A tokenizer is a pure function from text to a list of tokens. Its
    ``level`` names the segmentation level its tokens form; tokenizers
    below word level see one whitespace-delimited word at a time.
    """

    kind: TokenKind = TokenKind.STRING
    level: str = "word"

    def __init__(self, preserve_empty_tokens: bool = False):
        """Initialize tokenizer.

        Args:
            preserve_empty_tokens: Keep empty strings in the output
        """
        self.preserve_empty_tokens = preserve_empty_tokens

    @abstractmethod
    def split(self, text: str) -> list[Token]:
        """Split text into raw tokens.

        Args:
            text: Input text (already cleaned)

        Returns:
            List of tokens
        """
        pass

    def tokenize(self, text: str) -> list[Token]:
        tokens = self.split(text)
        if self.preserve_empty_tokens or self.kind is TokenKind.BYTE:
            return tokens
        return [t for t in tokens if t != ""]

    @property
    def splits_words(self) -> bool:
        """True when tokens are smaller than words."""
        return self.level in ("character", "byte")

    def character_lengths(self, word: str) -> list[int]:
        """Number of tokens each character of ``word`` spans."""
        raise NotImplementedError(f"{type(self).__name__} has no character boundaries")

    def __call__(self, text: str) -> list[Token]:
        return self.tokenize(text)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(level={self.level!r})"
