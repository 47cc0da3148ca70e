"""Chunk sources, persistence and tabular export."""

from .bundle_io import load_bundle, save_bundle
from .readers import chunk_documents, iter_sources, load_sources, stream_file_chunks
from .table_writer import TableWriter, bundle_to_frame

__all__ = [
    "load_bundle",
    "save_bundle",
    "chunk_documents",
    "iter_sources",
    "load_sources",
    "stream_file_chunks",
    "TableWriter",
    "bundle_to_frame",
]
