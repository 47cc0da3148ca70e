"""Tests for the segmentation store: Vocabulary, Corpus, Bundle."""

import numpy as np
import pytest

from textstrata.bundle import Bundle, get_corpus, get_token_ids, get_vocabulary, has_level
from textstrata.config import PreprocessConfig
from textstrata.errors import LevelLookupError, PreconditionError, StructuralInvariantError
from textstrata.models import CrossMap, LevelBundle, Vocabulary
from textstrata.store import assemble_bundle, build_corpus, token_key, tokens_to_ids


def make_vocabulary(tokens, specials=None):
    """Vocabulary with ids in the given order."""
    tokens = list(tokens)
    return Vocabulary(
        id_to_token=tokens,
        token_to_id={t: i for i, t in enumerate(tokens, 1)},
        frequencies=[1] * len(tokens),
        specials=specials if specials is not None else {"unk": 1},
    )


class TestVocabulary:
    """Tests for the immutable token table."""

    def test_lookup(self):
        vocab = make_vocabulary(["<UNK>", "a", "b"])
        assert len(vocab) == 3
        assert vocab.id_of("b") == 3
        assert vocab.id_of("zzz") == 1
        assert vocab.token_of(2) == "a"
        assert "a" in vocab

    def test_missing_unk(self):
        vocab = make_vocabulary(["a"], specials={})
        with pytest.raises(KeyError):
            vocab.id_of("b")

    def test_not_dense(self):
        with pytest.raises(StructuralInvariantError, match="not dense"):
            Vocabulary(
                id_to_token=["a", "b"],
                token_to_id={"a": 1, "b": 3},
                frequencies=[1, 1],
                specials={},
            )

    def test_special_out_of_range(self):
        with pytest.raises(StructuralInvariantError, match="outside"):
            make_vocabulary(["a"], specials={"unk": 2})

    def test_identity_equality(self):
        a = make_vocabulary(["<UNK>", "x"])
        b = make_vocabulary(["<UNK>", "x"])
        assert a != b
        assert a == a
        assert a.same_content(b)

    def test_immutable(self):
        vocab = make_vocabulary(["<UNK>", "x"])
        with pytest.raises(TypeError):
            vocab.token_to_id["y"] = 3


class TestBuildCorpus:
    """Tests for validated corpus construction."""

    def test_default_document_offsets(self):
        corpus = build_corpus([5, 6, 7])
        assert corpus.n_tokens == 3
        np.testing.assert_array_equal(corpus.document_offsets, [1, 4])
        assert corpus.recorded_levels == ("document",)

    def test_recorded_levels(self):
        corpus = build_corpus([5, 6, 7], {"word": [1, 2, 3, 4], "sentence": [1, 3, 4]})
        assert corpus.recorded_levels == ("word", "sentence", "document")
        assert corpus.n_units("sentence") == 2
        assert corpus.unit_range("sentence", 1) == (1, 2)
        assert corpus.unit_range("sentence", 2) == (3, 3)

    def test_wrong_sentinel(self):
        with pytest.raises(StructuralInvariantError, match="expected sentinel 4, got 3"):
            build_corpus([5, 6, 7], {"sentence": [1, 3]})

    def test_unsorted(self):
        with pytest.raises(StructuralInvariantError):
            build_corpus([5, 6, 7], {"sentence": [1, 3, 2, 4]})

    def test_unknown_level(self):
        with pytest.raises(PreconditionError, match="clause"):
            build_corpus([5, 6, 7], {"clause": [1, 4]})

    def test_empty_corpus(self):
        corpus = build_corpus([])
        assert corpus.n_tokens == 0
        np.testing.assert_array_equal(corpus.document_offsets, [1, 1])

    def test_arrays_read_only(self):
        corpus = build_corpus([5, 6, 7], {"word": [1, 2, 3, 4]})
        with pytest.raises(ValueError):
            corpus.token_ids[0] = 1
        with pytest.raises(ValueError):
            corpus.word_offsets[0] = 2

    def test_id_dtype(self):
        corpus = build_corpus([1, 2], id_dtype="uint16")
        assert corpus.token_ids.dtype == np.uint16

    def test_missing_level(self):
        corpus = build_corpus([5, 6, 7])
        assert corpus.offsets("sentence") is None
        with pytest.raises(StructuralInvariantError):
            corpus.n_units("sentence")


class TestTokensToIds:
    """Tests for mapping tokens to vocabulary ids."""

    def test_unknown_maps_to_unk(self):
        vocab = make_vocabulary(["<UNK>", "a", "b"])
        assert tokens_to_ids(["a", "c", "b"], vocab) == [2, 1, 3]

    def test_byte_tokens(self):
        assert token_key(104) == "h"
        vocab = make_vocabulary(["<UNK>", "h"])
        assert tokens_to_ids([104, 105], vocab) == [2, 1]

    def test_no_unk(self):
        vocab = make_vocabulary(["a"], specials={})
        with pytest.raises(PreconditionError, match="unk"):
            tokens_to_ids(["a"], vocab)


class TestBundle:
    """Tests for the Bundle aggregate and its accessors."""

    def _bundle(self):
        vocab = make_vocabulary(["<UNK>", "a", "b"])
        return assemble_bundle(
            ["a", "b", "a"],
            {"word": [1, 2, 3, 4], "sentence": [1, 3, 4], "document": [1, 4]},
            vocab,
            PreprocessConfig(),
        )

    def test_assemble(self):
        bundle = self._bundle()
        assert list(bundle) == ["word"]
        assert has_level(bundle, "word")
        np.testing.assert_array_equal(get_token_ids(bundle, "word"), [2, 3, 2])
        assert get_corpus(bundle, "word").n_units("sentence") == 2
        assert len(get_vocabulary(bundle, "word")) == 3

    def test_missing_level_lists_available(self):
        bundle = self._bundle()
        with pytest.raises(LevelLookupError) as exc_info:
            bundle.get_level("sentence")
        assert exc_info.value.available == ("word",)
        assert "Available levels: ['word']" in str(exc_info.value)
        assert isinstance(exc_info.value, LookupError)

    def test_missing_alignment(self):
        bundle = self._bundle()
        with pytest.raises(LevelLookupError, match="No alignment byte -> word"):
            bundle.get_alignment("byte", "word")

    def test_levels_not_replaced(self):
        bundle = self._bundle()
        with pytest.raises(PreconditionError):
            bundle.add_level("word", bundle.get_level("word"))

    def test_ids_must_fit_vocabulary(self):
        corpus = build_corpus([1, 5])
        with pytest.raises(StructuralInvariantError, match="token ID 5"):
            LevelBundle(corpus, make_vocabulary(["<UNK>", "a"]))

    def test_alignment_levels_must_exist(self):
        bundle = self._bundle()
        with pytest.raises(LevelLookupError):
            bundle.add_alignment(CrossMap("byte", "word", np.array([1, 2, 3])))

    def test_with_extras(self):
        bundle = self._bundle()
        tagged = bundle.with_extras({"source": "test"})
        assert tagged.extras == {"source": "test"}
        assert bundle.extras is None
        assert tagged.get_level("word") is bundle.get_level("word")

    def test_summary(self):
        summary = self._bundle().summary()
        assert "Level word" in summary
        assert "Tokens: 3" in summary


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
