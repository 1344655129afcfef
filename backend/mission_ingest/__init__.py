"""Mission Control ingestion service for OpenClaw gateway activity."""
