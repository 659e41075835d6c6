"""Ingestion package for command-line pipelines.

Contains ingestors that populate the vector store with chunked, embedded
content. See ingest_file.py for the local .txt/.md pipeline.
"""
