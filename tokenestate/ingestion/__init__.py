"""Event sources and the ingest pipeline."""

from tokenestate.ingestion.base import EventSource, IngestResult
from tokenestate.ingestion.json_source import JsonFileSource, load_properties
from tokenestate.ingestion.pipeline import IngestPipeline

__all__ = ["EventSource", "IngestPipeline", "IngestResult", "JsonFileSource", "load_properties"]
