"""GitHub integration: OAuth connection, repository sync and webhook ingestion."""
