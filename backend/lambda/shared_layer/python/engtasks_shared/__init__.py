"""engtasks_shared — Shared layer for the engineering tasks API Lambda.

Provides:
    - Static API key authentication and per-key rate limiting
    - DynamoDB client singleton and task store adapter
    - HTTP response helpers with CORS and a typed error envelope
    - Input sanitization, schema validation and pagination tokens
    - Query planning for filtered task listing
"""

__version__ = "1.0.0"
