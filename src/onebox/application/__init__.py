"""Application layer - ingestion pipeline, classification and mailbox sync."""
