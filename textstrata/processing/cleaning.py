"""Text cleaning: configurable string rewrites applied before tokenization."""

import html
import logging
import unicodedata
from typing import Iterable, Optional

import regex

from ..config import CleaningConfig

logger = logging.getLogger(__name__)

_REGEX_FLAGS = regex.VERSION1 | regex.UNICODE


class TextCleaner:
    """
    Apply the cleaning steps enabled in a :class:`CleaningConfig`.

    Steps run in a fixed order: Unicode normalization, HTML stripping,
    repeated-character squeezing, number replacement, punctuation mapping,
    URL/e-mail replacement, lower-casing, accent stripping, control
    character removal, whitespace normalization, punctuation removal.
    Every step is a pure ``str -> str`` classmethod usable on its own.
    """

    HTML_TAG = regex.compile(r"<[^>]*>", _REGEX_FLAGS)
    CONTROL = regex.compile(r"(?!\s)[\p{Cc}\p{Cf}]", _REGEX_FLAGS)
    PUNCTUATION = regex.compile(r"[\p{P}\p{S}]", _REGEX_FLAGS)
    COMBINING = regex.compile(r"\p{Mn}", _REGEX_FLAGS)
    ZERO_WIDTH = regex.compile(r"[\u200B\u200C\u200D\uFEFF]+", _REGEX_FLAGS)
    URL = regex.compile(
        r"(?:https?://)?[A-Za-z0-9\-_]+(?:\.[A-Za-z0-9\-_]+)+(?:/[^\s]*)?", _REGEX_FLAGS
    )
    EMAIL = regex.compile(r"[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}", _REGEX_FLAGS)
    NUMBER = regex.compile(r"[+-]?\d+(?:\.\d+)?", _REGEX_FLAGS)

    UNICODE_PUNCTUATION = {
        "“": '"', "”": '"',
        "‘": "'", "’": "'",
        "«": '"', "»": '"',
        "‐": "-", "‑": "-",
        "–": "-", "—": "-", "―": "-",
        "…": "...",
        "‹": "<", "›": ">",
    }
    _PUNCTUATION_TABLE = str.maketrans(UNICODE_PUNCTUATION)

    def __init__(self, config: Optional[CleaningConfig] = None):
        self.config = config or CleaningConfig()

    @classmethod
    def normalize_unicode(cls, text: str, form: str = "NFC") -> str:
        if form == "none":
            return text
        return unicodedata.normalize(form, text)

    @classmethod
    def strip_html(cls, text: str, decode_entities: bool = True) -> str:
        """Remove ``<...>`` tags and optionally decode HTML entities."""
        text = cls.HTML_TAG.sub("", text)
        if decode_entities:
            text = html.unescape(text)
        return text

    @classmethod
    def squeeze_char_runs(cls, text: str, max_run: int = 3) -> str:
        """Collapse any run of one code point to at most ``max_run`` copies."""
        if not text:
            return text
        return regex.sub(r"(.)\1{%d,}" % max_run, lambda m: m.group(1) * max_run, text,
                         flags=regex.DOTALL)

    @classmethod
    def map_unicode_punctuation(cls, text: str) -> str:
        """Replace curly quotes, long dashes and the like with ASCII equivalents."""
        return text.translate(cls._PUNCTUATION_TABLE)

    @classmethod
    def replace_urls_emails(
        cls,
        text: str,
        url_sentinel: Optional[str] = "<URL>",
        mail_sentinel: Optional[str] = "<EMAIL>",
    ) -> str:
        """
        Replace e-mail addresses and URLs with sentinel tokens.

        E-mails are replaced first so their host part is not read as a URL.
        A ``None`` sentinel leaves that kind untouched.
        """
        if mail_sentinel is not None:
            text = cls.EMAIL.sub(mail_sentinel, text)
        if url_sentinel is not None:
            text = cls.URL.sub(url_sentinel, text)
        return text

    @classmethod
    def replace_numbers(cls, text: str, sentinel: str = "<NUM>") -> str:
        return cls.NUMBER.sub(sentinel, text)

    @classmethod
    def strip_accents(cls, text: str) -> str:
        """Drop combining marks (category Mn) and recompose."""
        decomposed = unicodedata.normalize("NFD", text)
        return unicodedata.normalize("NFC", cls.COMBINING.sub("", decomposed))

    @classmethod
    def remove_control_characters(cls, text: str) -> str:
        """Remove control and format characters, keeping whitespace."""
        return cls.CONTROL.sub("", text)

    @classmethod
    def normalize_whitespace(
        cls,
        text: str,
        strip_ends: bool = True,
        preserve_newlines: bool = False,
        remove_zero_width: bool = False,
    ) -> str:
        """
        Collapse whitespace runs to a single space.

        With ``preserve_newlines`` newlines survive: blanks around them are
        trimmed and runs of three or more collapse to one blank line, so
        paragraph breaks stay visible as ``"\\n\\n"``.
        """
        if not text:
            return text
        if remove_zero_width:
            text = cls.ZERO_WIDTH.sub(" ", text)

        if preserve_newlines:
            text = regex.sub(r"[^\S\n]+", " ", text)
            text = regex.sub(r" *\n *", "\n", text)
            text = regex.sub(r"\n{3,}", "\n\n", text)
        else:
            text = regex.sub(r"\s+", " ", text)

        if strip_ends:
            text = text.strip()
        return text

    @classmethod
    def remove_punctuation(cls, text: str) -> str:
        return cls.PUNCTUATION.sub("", text)

    def normalize(self, text: str) -> str:
        """Every enabled step except punctuation removal."""
        cfg = self.config
        text = self.normalize_unicode(text, cfg.unicode_normalisation_form)

        if cfg.strip_html_tags:
            text = self.strip_html(text, decode_entities=cfg.html_entity_decode)
        if cfg.squeeze_repeat_chars:
            text = self.squeeze_char_runs(text, max_run=cfg.max_char_run)
        if cfg.replace_numbers:
            text = self.replace_numbers(text, sentinel=cfg.number_sentinel)
        if cfg.map_unicode_punctuation:
            text = self.map_unicode_punctuation(text)
        if cfg.replace_urls or cfg.replace_emails:
            text = self.replace_urls_emails(
                text,
                url_sentinel=cfg.url_sentinel if cfg.replace_urls else None,
                mail_sentinel=cfg.mail_sentinel if cfg.replace_emails else None,
            )

        if cfg.lowercase:
            text = text.lower()
        if cfg.strip_accents:
            text = self.strip_accents(text)
        if cfg.remove_control_characters:
            text = self.remove_control_characters(text)

        if cfg.normalise_whitespace or cfg.remove_zero_width_chars:
            text = self.normalize_whitespace(
                text,
                strip_ends=cfg.trim_edges,
                preserve_newlines=cfg.preserve_newlines,
                remove_zero_width=cfg.remove_zero_width_chars,
            )
        elif cfg.trim_edges:
            text = text.strip()
        return text

    def finalize(self, text: str) -> str:
        """Steps that run after segmentation (punctuation removal)."""
        if self.config.remove_punctuation:
            text = self.remove_punctuation(text)
        return text

    def clean(self, text: str) -> str:
        """Run every enabled step."""
        return self.finalize(self.normalize(text))


def clean_text(text: str, config: Optional[CleaningConfig] = None) -> str:
    """
    Convenience function for cleaning a single string.

    Args:
        text: Raw text.
        config: Cleaning options (defaults when omitted).

    Returns:
        Cleaned text.
    """
    return TextCleaner(config).clean(text)


def clean_documents(docs: Iterable[str], config: Optional[CleaningConfig] = None) -> list[str]:
    """Clean every document, keeping length and order."""
    cleaner = TextCleaner(config)
    return [cleaner.clean(doc) for doc in docs]
