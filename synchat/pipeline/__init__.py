"""Background ingestion pipeline components."""

from synchat.pipeline.ingestion_queue import IngestionJob, IngestionQueue, JobStatus

__all__ = ["IngestionJob", "IngestionQueue", "JobStatus"]
