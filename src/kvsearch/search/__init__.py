"""Inverted-index core.

- keyspace: key families and their byte layout
- ordering: order-preserving encodings for weights and structured values
- analyzers: tokenizer/filter pipeline and per-document term weighting
- stats: running statistics over terms written per document
- locks: per-document mutual exclusion
- indexer: remove-then-write of a document's postings
- query: range-scan search with resumable pagination
- ranking: similarity ranking of candidates
"""
