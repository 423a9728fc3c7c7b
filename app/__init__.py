"""
journey-transfer-api Application Package

Directory Structure:
├── domain/            # Entities, errors, events, specifications, strategies
├── application/       # Collector, bundle builder, remapper, resolver, importer
├── infrastructure/    # REST client for a live identity platform realm
├── localstore/        # File-backed realm used for offline work and tests
├── routers/           # FastAPI route handlers
├── schemas/           # Pydantic models for API requests/responses
│   └── api_schemas.py # HTTP request/response structures
├── storage/           # Bundle storage implementations
│   ├── filesystem.py  # Local filesystem storage
│   └── s3.py         # S3 storage
└── config.py         # Application configuration

Realm access goes through ``app.domain.ports.RepositoryPort``. The HTTP
repository talks to AM/IDM endpoints; the local store keeps the same
entities as JSON documents on disk.
"""
