"""Tests for the streaming merge engine."""

import numpy as np
import pytest

from textstrata.config import PreprocessConfig
from textstrata.errors import MergeError, PreconditionError, StructuralInvariantError
from textstrata.merge import StreamingMerger, merge_bundles, merge_offsets
from textstrata.models import LevelBundle
from textstrata.processing.vocabulary import build_vocabulary
from textstrata.store import assemble_bundle, build_corpus


def chunk_bundle(tokens, offsets, vocabulary, config=None, open_levels=(), index=0):
    """Chunk bundle over ``tokens`` as the pipeline would tag it."""
    return assemble_bundle(
        tokens,
        offsets,
        vocabulary,
        config or PreprocessConfig(),
        open_levels=open_levels,
        chunk_index=index,
    )


class TestMergeOffsets:
    """Tests for appending one chunk's vector."""

    def test_concatenates_with_shift(self):
        merged = []
        merge_offsets(merged, [1, 3, 4], 0, 3)
        assert merged == [1, 3, 4]
        merge_offsets(merged, [1, 2, 3], 3, 2)
        assert merged == [1, 3, 4, 5, 6]

    def test_continued_unit(self):
        merged = [1, 3, 4]
        merge_offsets(merged, [1, 2, 3], 3, 2, continues=True)
        assert merged == [1, 3, 5, 6]

    def test_foreign_styles(self):
        merged = [1, 3, 4]
        merge_offsets(merged, [0, 1, 3], 3, 2)
        assert merged == [1, 3, 4, 6]

        merged = [1, 3, 4]
        merge_offsets(merged, [1, 2], 3, 2)
        assert merged == [1, 3, 4, 6]

    def test_leading_one_sentinel(self):
        merged = [1, 3, 4]
        merge_offsets(merged, [1, 1, 2, 3], 3, 2)
        assert merged == [1, 3, 4, 5, 6]

    def test_inclusive_incoming_sentinel(self):
        merged = [1, 3, 4]
        merge_offsets(merged, [1, 2, 2], 3, 2)
        assert merged == [1, 3, 4, 5, 6]

    def test_empty_incoming(self):
        merged = [1, 3, 4]
        merge_offsets(merged, [], 3, 0)
        assert merged == [1, 3, 4]
        merge_offsets(merged, None, 3, 0)
        assert merged == [1, 3, 4]

    def test_inclusive_previous_sentinel(self):
        merged = [1, 3, 3]
        merge_offsets(merged, [1, 2, 3], 3, 2)
        assert merged == [1, 3, 4, 5, 6]

    def test_stale_sentinel_mismatch(self):
        with pytest.raises(StructuralInvariantError, match="expected sentinel 4"):
            merge_offsets([1, 5], [1, 2], 3, 1, level="sentence")


class TestStreamingMerger:
    """Tests for folding chunk bundles."""

    def setup_method(self):
        self.vocab = build_vocabulary(["a", "b", "c"])

    def test_single_chunk(self):
        bundle = chunk_bundle(
            ["a", "b", "c"],
            {"word": [1, 2, 3, 4], "sentence": [1, 3, 4], "document": [1, 4]},
            self.vocab,
        )
        merged = merge_bundles([bundle])
        np.testing.assert_array_equal(
            merged.get_token_ids("word"), bundle.get_token_ids("word")
        )
        np.testing.assert_array_equal(merged.get_corpus("word").sentence_offsets, [1, 3, 4])
        assert merged.get_vocabulary("word") is self.vocab
        assert merged.metadata.chunk_index is None
        assert merged.metadata.open_levels == frozenset()

    def test_continuation_across_chunks(self):
        first = chunk_bundle(
            ["a", "b", "c"],
            {"word": [1, 2, 3, 4], "sentence": [1, 3, 4], "document": [1, 4]},
            self.vocab,
            open_levels={"sentence", "document"},
        )
        second = chunk_bundle(
            ["a", "b"],
            {"word": [1, 2, 3], "sentence": [1, 2, 3], "document": [1, 3]},
            self.vocab,
            index=1,
        )
        merged = merge_bundles([first, second])
        corpus = merged.get_corpus("word")

        assert corpus.n_tokens == 5
        np.testing.assert_array_equal(corpus.word_offsets, [1, 2, 3, 4, 5, 6])
        np.testing.assert_array_equal(corpus.sentence_offsets, [1, 3, 5, 6])
        np.testing.assert_array_equal(corpus.document_offsets, [1, 6])

    def test_content_equal_vocabularies_rejected(self):
        other = build_vocabulary(["a", "b", "c"])
        assert other.same_content(self.vocab)

        merger = StreamingMerger()
        merger.add(chunk_bundle(["a"], {"document": [1, 2]}, self.vocab))
        with pytest.raises(MergeError, match="vocabulary is not the instance"):
            merger.add(chunk_bundle(["b"], {"document": [1, 2]}, other, index=1))

    def test_configuration_mismatch(self):
        merger = StreamingMerger()
        merger.add(chunk_bundle(["a"], {"document": [1, 2]}, self.vocab))
        config = PreprocessConfig(vocabulary={"minimum_token_frequency": 2})
        with pytest.raises(MergeError, match="different configuration"):
            merger.add(chunk_bundle(["b"], {"document": [1, 2]}, self.vocab, config, index=1))

    def test_recorded_levels_mismatch(self):
        merger = StreamingMerger()
        merger.add(chunk_bundle(["a"], {"sentence": [1, 2]}, self.vocab))
        with pytest.raises(MergeError, match="records word offsets"):
            merger.add(chunk_bundle(["b"], {"document": [1, 2]}, self.vocab, index=1))

    def test_level_missing_from_later_chunk(self):
        merger = StreamingMerger()
        merger.add(self._word_and_byte_chunk())
        with pytest.raises(MergeError, match=r"has levels \[.word.\], expected \[.byte., .word.\]"):
            merger.add(chunk_bundle(["b"], {"document": [1, 2]}, self.vocab, index=1))

    def test_level_added_by_later_chunk(self):
        merger = StreamingMerger()
        merger.add(chunk_bundle(["a"], {"document": [1, 2]}, self.vocab))
        with pytest.raises(MergeError, match=r"has levels \[.byte., .word.\], expected \[.word.\]"):
            merger.add(self._word_and_byte_chunk(index=1))

    def _word_and_byte_chunk(self, index=0):
        bundle = chunk_bundle(["a"], {"document": [1, 2]}, self.vocab, index=index)
        return bundle.add_level("byte", LevelBundle(build_corpus([2]), self.vocab))

    def test_merge_error_is_precondition_error(self):
        assert issubclass(MergeError, PreconditionError)

    def test_no_chunks(self):
        with pytest.raises(PreconditionError, match="No chunk bundles"):
            merge_bundles([])

    def test_empty_chunk(self):
        first = chunk_bundle(["a", "b"], {"sentence": [1, 3]}, self.vocab)
        empty = chunk_bundle([], {"sentence": [1]}, self.vocab, index=1)
        last = chunk_bundle(["c"], {"sentence": [1, 2]}, self.vocab, index=2)

        corpus = merge_bundles([first, empty, last]).get_corpus("word")
        np.testing.assert_array_equal(corpus.token_ids, merge_bundles([first, last])
                                      .get_token_ids("word"))
        np.testing.assert_array_equal(corpus.sentence_offsets, [1, 3, 4])
        np.testing.assert_array_equal(corpus.document_offsets, [1, 3, 4])


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
