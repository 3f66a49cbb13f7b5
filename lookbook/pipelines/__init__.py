"""Pipelines for browse/search, indexing, AI preparation, revalidation and events.

Each step takes its collaborators (content client, session maker, embedder)
as arguments so the API and the CLI jobs can share them.
"""
