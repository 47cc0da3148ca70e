"""Tests for the alignment builder."""

import numpy as np
import pytest

from textstrata.alignment import (
    PLACEHOLDER_TOKEN,
    align_bundle,
    align_corpora,
    align_offsets,
    build_alignments,
    ensure_lower_levels,
)
from textstrata.bundle import Bundle, get_alignment, has_alignment, is_placeholder
from textstrata.config import PreprocessConfig
from textstrata.errors import LevelLookupError, PreconditionError, StructuralInvariantError
from textstrata.models import LevelBundle, PipelineMetadata, Vocabulary
from textstrata.pipeline import preprocess_corpus
from textstrata.store import build_corpus


def byte_config(**cleaning):
    return PreprocessConfig(
        tokenization="byte",
        segmentation={"record_byte_offsets": True, "record_character_offsets": True},
        cleaning=cleaning,
    )


def byte_bundle(token_ids, offsets):
    """Single byte-level bundle over ``token_ids``."""
    vocab = Vocabulary(
        id_to_token=["<UNK>", "a", "b", "c"],
        token_to_id={"<UNK>": 1, "a": 2, "b": 3, "c": 4},
        frequencies=[0, 1, 1, 1],
        specials={"unk": 1},
    )
    corpus = build_corpus(token_ids, offsets)
    return Bundle(
        levels={"byte": LevelBundle(corpus, vocab)},
        metadata=PipelineMetadata(configuration=byte_config()),
    )


class TestAlignOffsets:
    """Tests for the membership map between two offset vectors."""

    def test_each_byte_its_own_word(self):
        cross_map = align_offsets([1, 2, 3, 4], [1, 2, 3, 4], "byte", "word")
        np.testing.assert_array_equal(cross_map.alignment, [1, 2, 3])
        assert cross_map.key == ("byte", "word")

    def test_two_bytes_in_first_word(self):
        cross_map = align_offsets([1, 2, 3, 4], [1, 3, 4], "byte", "word")
        np.testing.assert_array_equal(cross_map.alignment, [1, 1, 2])

    def test_non_identity_fine_level(self):
        """Coarse boundaries are re-expressed in fine-unit space."""
        # 5 bytes, 3 characters (1, 2-3, 4-5), 2 words (chars 1-2, 3)
        cross_map = align_offsets([1, 2, 4, 6], [1, 4, 6], "character", "word")
        np.testing.assert_array_equal(cross_map.alignment, [1, 1, 2])

    def test_leading_zero_sentinel(self):
        cross_map = align_offsets([0, 1, 2, 3, 4], [0, 1, 3, 4], "byte", "word")
        np.testing.assert_array_equal(cross_map.alignment, [1, 1, 2])

    def test_leading_one_sentinel(self):
        cross_map = align_offsets([1, 1, 2, 3, 4], [1, 1, 3, 4], "byte", "word")
        assert len(cross_map) == 3
        np.testing.assert_array_equal(cross_map.alignment, [1, 1, 2])

    def test_inclusive_end_style(self):
        cross_map = align_offsets([1, 2, 3, 3], [1, 3, 3], "byte", "word", n_tokens=3)
        np.testing.assert_array_equal(cross_map.alignment, [1, 1, 2])

    def test_mixed_end_styles(self):
        cross_map = align_offsets([1, 2, 3, 4], [1, 3, 3], "byte", "word", n_tokens=3)
        np.testing.assert_array_equal(cross_map.alignment, [1, 1, 2])

        cross_map = align_offsets([0, 1, 2, 3, 3], [1, 3, 4], "byte", "word", n_tokens=3)
        np.testing.assert_array_equal(cross_map.alignment, [1, 1, 2])

    def test_span_mismatch(self):
        with pytest.raises(PreconditionError, match="byte sentinel 4, word sentinel 3"):
            align_offsets([1, 2, 3, 4], [1, 3], "byte", "word")

    def test_too_short(self):
        with pytest.raises(PreconditionError, match="Missing valid word offsets"):
            align_offsets([1, 2, 3, 4], [4], "byte", "word")
        with pytest.raises(PreconditionError):
            align_offsets([1, 2, 3, 4], None, "byte", "word")

    def test_coarse_boundary_splits_fine_unit(self):
        with pytest.raises(StructuralInvariantError):
            align_offsets([1, 3, 5], [1, 2, 5], "character", "word")

    def test_bijection(self):
        """Members of every coarse unit are exactly its fine range."""
        rng = np.random.default_rng(0)
        n = 200
        cuts = np.sort(rng.choice(np.arange(2, n + 1), size=30, replace=False))
        coarse = np.concatenate(([1], cuts, [n + 1]))
        fine = np.arange(1, n + 2)

        cross_map = align_offsets(fine, coarse, "byte", "word")
        assert len(cross_map) == n
        for c in range(1, len(coarse)):
            expected = np.arange(coarse[c - 1], coarse[c])
            np.testing.assert_array_equal(cross_map.members(c), expected)


class TestAlignCorpora:
    """Tests for choosing the source of each vector."""

    def test_fine_corpus_records_coarse_level(self):
        corpus = build_corpus([2, 3, 4], {"byte": [1, 2, 3, 4], "word": [1, 3, 4]})
        cross_map = align_corpora(corpus, None, "byte", "word")
        np.testing.assert_array_equal(cross_map.alignment, [1, 1, 2])

    def test_coarse_vector_from_coarse_corpus(self):
        fine = build_corpus([2, 3, 4])
        coarse = build_corpus([2, 3, 4], {"word": [1, 2, 4]})
        cross_map = align_corpora(fine, coarse, "byte", "word")
        np.testing.assert_array_equal(cross_map.alignment, [1, 2, 2])

    def test_different_spans(self):
        fine = build_corpus([2, 3, 4])
        coarse = build_corpus([2, 3], {"word": [1, 2, 3]})
        with pytest.raises(PreconditionError, match="different spans"):
            align_corpora(fine, coarse, "byte", "word")


class TestAlignBundle:
    """Tests for placeholder synthesis and alignment building on bundles."""

    def test_concrete_example(self):
        bundle = byte_bundle([2, 3, 4], {"byte": [1, 2, 3, 4], "word": [1, 3, 4]})
        align_bundle(bundle, [("byte", "word")])

        assert bundle.is_placeholder("word")
        assert not bundle.is_placeholder("byte")
        np.testing.assert_array_equal(bundle.get_alignment("byte", "word").alignment, [1, 1, 2])

        word = bundle.get_level("word")
        assert word.vocabulary.id_to_token == (PLACEHOLDER_TOKEN,)
        np.testing.assert_array_equal(word.corpus.token_ids, [1, 1])
        np.testing.assert_array_equal(word.corpus.document_offsets, [1, 3])

    def test_module_level_accessors(self):
        bundle = align_bundle(
            byte_bundle([2, 3, 4], {"byte": [1, 2, 3, 4], "word": [1, 3, 4]}),
            [("byte", "word")],
        )
        assert has_alignment(bundle, "byte", "word")
        assert not has_alignment(bundle, "word", "byte")
        assert get_alignment(bundle, "byte", "word") is bundle.get_alignment("byte", "word")
        assert is_placeholder(bundle, "word")
        assert not is_placeholder(bundle, "byte")
        with pytest.raises(LevelLookupError):
            get_alignment(bundle, "character", "word")

    def test_byte_pipeline_builds_canonical_pairs(self):
        bundle = preprocess_corpus(["H\u00e9 ho. Hi!"], byte_config(strip_accents=False))
        assert set(bundle.keys()) == {"byte", "character", "word"}
        assert bundle.real_levels == ("byte",)
        assert set(bundle.alignments) == {
            ("byte", "character"),
            ("byte", "word"),
            ("character", "word"),
        }
        # 7 bytes (two for the accented e), 6 characters, 3 words
        np.testing.assert_array_equal(
            bundle.get_alignment("byte", "character").alignment, [1, 2, 2, 3, 4, 5, 6]
        )
        np.testing.assert_array_equal(
            bundle.get_alignment("byte", "word").alignment, [1, 1, 1, 2, 2, 3, 3]
        )
        np.testing.assert_array_equal(
            bundle.get_alignment("character", "word").alignment, [1, 1, 2, 2, 3, 3]
        )

    def test_idempotent(self):
        bundle = preprocess_corpus(["Some text. More text."], byte_config())
        before = dict(bundle.alignments)

        build_alignments(bundle)
        align_bundle(bundle)

        assert bundle.alignments.keys() == before.keys()
        for key, cross_map in before.items():
            assert bundle.alignments[key] is cross_map

    def test_absent_levels_skipped(self):
        bundle = preprocess_corpus(["Plain words only."])
        align_bundle(bundle)
        assert list(bundle) == ["word"]
        assert bundle.alignments == {}

    def test_ensure_lower_levels_without_offsets(self):
        bundle = byte_bundle([2, 3, 4], {"byte": [1, 2, 3, 4]})
        ensure_lower_levels(bundle, ["character"])
        assert not bundle.has_level("character")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
