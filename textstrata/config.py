"""Configuration management for the preprocessing pipeline."""

from pathlib import Path
from typing import Callable, Literal, Optional, Union

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

TokenizerName = Literal["whitespace", "unicode", "char", "byte"]

# token level produced by each built-in tokenizer
TOKENIZER_LEVELS = {
    "whitespace": "word",
    "unicode": "word",
    "char": "character",
    "byte": "byte",
}


class CleaningConfig(BaseModel):
    """Configuration for text cleaning."""

    unicode_normalisation_form: Literal["NFC", "NFD", "NFKC", "NFKD", "none"] = "NFC"
    strip_html_tags: bool = False
    html_entity_decode: bool = True
    squeeze_repeat_chars: bool = False
    max_char_run: int = Field(default=3, ge=1)
    map_unicode_punctuation: bool = False
    replace_urls: bool = False
    replace_emails: bool = False
    url_sentinel: str = "<URL>"
    mail_sentinel: str = "<EMAIL>"
    replace_numbers: bool = False
    number_sentinel: str = "<NUM>"
    lowercase: bool = True
    strip_accents: bool = True
    remove_control_characters: bool = True
    normalise_whitespace: bool = True
    preserve_newlines: bool = Field(
        default=True,
        description="Keep blank-line paragraph breaks while collapsing other whitespace",
    )
    remove_zero_width_chars: bool = False
    trim_edges: bool = True
    remove_punctuation: bool = True


class TokenizationConfig(BaseModel):
    """Configuration for the tokenizer."""

    tokenizer: Union[TokenizerName, Callable] = "whitespace"
    level: Optional[str] = Field(
        default=None,
        description="Level name for tokens of a custom callable tokenizer (default: word)",
    )
    preserve_empty_tokens: bool = False

    @property
    def is_custom(self) -> bool:
        return callable(self.tokenizer)

    @property
    def token_level(self) -> str:
        """Name of the level the tokenizer's output is stored under."""
        if self.is_custom:
            return self.level or "word"
        return TOKENIZER_LEVELS[self.tokenizer]


class VocabularyConfig(BaseModel):
    """Configuration for vocabulary building."""

    minimum_token_frequency: int = Field(default=1, ge=1)
    special_tokens: dict[str, str] = Field(
        default_factory=lambda: {"unk": "<UNK>", "pad": "<PAD>"}
    )


class SegmentationConfig(BaseModel):
    """Which offset vectors to record."""

    record_byte_offsets: bool = False
    record_character_offsets: bool = False
    record_word_offsets: bool = True
    record_sentence_offsets: bool = True
    record_paragraph_offsets: bool = True
    record_document_offsets: bool = True

    @property
    def recorded_levels(self) -> tuple[str, ...]:
        levels = []
        for level in ("byte", "character", "word", "sentence", "paragraph", "document"):
            if getattr(self, f"record_{level}_offsets"):
                levels.append(level)
        return tuple(levels)


class StreamingConfig(BaseModel):
    """Configuration for chunked processing."""

    chunk_tokens: int = Field(default=500_000, ge=1)
    chunk_bytes: int = Field(default=1 << 20, ge=16)
    read_files_in_blocks: bool = Field(
        default=False,
        description="Stream file sources in chunk_bytes blocks instead of whole documents",
    )
    show_progress: bool = False


class PreprocessConfig(BaseModel):
    """Main configuration for the preprocessing pipeline."""

    cleaning: CleaningConfig = Field(default_factory=CleaningConfig)
    tokenization: TokenizationConfig = Field(default_factory=TokenizationConfig)
    vocabulary: VocabularyConfig = Field(default_factory=VocabularyConfig)
    segmentation: SegmentationConfig = Field(default_factory=SegmentationConfig)
    streaming: StreamingConfig = Field(default_factory=StreamingConfig)
    id_dtype: Literal["uint16", "uint32", "uint64"] = "uint32"

    @field_validator("tokenization", mode="before")
    @classmethod
    def convert_tokenizer_shorthand(cls, v):
        """Allow ``tokenization: byte`` as a shorthand in YAML."""
        if isinstance(v, str) or callable(v):
            return {"tokenizer": v}
        return v

    @model_validator(mode="after")
    def check_offsets_match_tokenizer(self) -> "PreprocessConfig":
        """Byte and character offsets only exist in byte/character index space."""
        tokenizer = self.tokenization.tokenizer
        if self.segmentation.record_byte_offsets and tokenizer != "byte":
            raise ValueError("record_byte_offsets=True requires tokenizer='byte'")
        if self.segmentation.record_character_offsets and tokenizer not in ("char", "byte"):
            raise ValueError(
                "record_character_offsets=True requires tokenizer='char' or 'byte'"
            )
        return self

    @property
    def token_level(self) -> str:
        return self.tokenization.token_level

    @classmethod
    def from_yaml(cls, path: str | Path) -> "PreprocessConfig":
        """Load configuration from a YAML file."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        return cls(**data)

    def to_yaml(self, path: str | Path) -> None:
        """Save configuration to a YAML file."""
        if self.tokenization.is_custom:
            raise ValueError("Configurations with a callable tokenizer cannot be saved")
        data = self.model_dump(mode="json")
        with open(path, "w", encoding="utf-8") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)


def load_config(config_path: Optional[str | Path] = None) -> PreprocessConfig:
    """
    Load preprocessing configuration from YAML file.

    Args:
        config_path: Path to config file. If None, looks for config.yaml in current directory.

    Returns:
        PreprocessConfig object
    """
    if config_path is None:
        config_path = Path("config.yaml")

    return PreprocessConfig.from_yaml(config_path)


def get_default_config() -> PreprocessConfig:
    """Get default configuration (whitespace tokenizer, word/sentence/paragraph/document offsets)."""
    return PreprocessConfig()
