"""Website ingestion pipeline for the per-tenant knowledge store.

Orchestrates the full pipeline: **delete -> fetch -> chunk -> embed -> store**.

1. **Fetch** (via IContentFetcher) -- downloads the page HTML.

2. **Chunk** (chunker.py / HtmlChunker) -- strips boilerplate and splits the
   page into ~200-word chunks, never over 300, tagged with the headings
   they sit under.

3. **Embed** (services/embedding / Embedder) -- batches of 20 with retry
   and backoff on rate limits.

4. **Store** (via IKnowledgeStore) -- inserted in batches of 100 rows.

The IngestionService class orchestrates the stages; IngestionQueue
(synchat.pipeline) runs it in the background.
"""

from synchat.services.ingestion.chunker import HtmlChunker
from synchat.services.ingestion.ingestion_service import IngestionService

__all__ = ["HtmlChunker", "IngestionService"]
