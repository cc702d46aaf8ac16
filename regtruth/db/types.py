"""Column types shared by models: UUID and JSON that map to native PostgreSQL types."""

from sqlalchemy import JSON, Uuid
from sqlalchemy.dialects.postgresql import JSONB

UUIDType = Uuid(as_uuid=True)
JSONType = JSON().with_variant(JSONB(), "postgresql")
