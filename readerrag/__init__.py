"""Retrieval core of a document-reader assistant: chunking, embedding, vector
storage and exact cosine-similarity retrieval, with a thin HTTP surface.

Submodules overview:
- main: FastAPI application bootstrap and routes.
- config: Application settings and the typed embedding provider config.
- errors: Exception taxonomy shared by all layers.
- db: Async engine/session management helpers.
- models: ORM model for stored chunks.
- schemas: Pydantic request/response models for API contracts.
- utils: Chunking and deterministic record ids.
- embedding: Batched client for OpenAI-compatible embedding endpoints.
- store: Session-scoped vector store.
- retrieval: Cosine similarity and top-K ranking.
- pipeline: Ingestion and query orchestration.
- ingestion: Command-line ingestors.
- obs: Logging setup and OpenTelemetry spans.
"""
