"""
DocFiller: fills the self-employment income declaration PDF.

This package bundles:
  - submission models and calendar week helpers
  - versioned field mapping tables for the government template
  - section fillers and the fill orchestrator
  - draft storage keyed by the client's user id
"""

from .draft_store import DraftRecord, DraftStore, JsonDraftStore, build_draft_store
from .schema import FormData
from .service import DOWNLOAD_FILENAME, FormFillService, PdfGenerationError

__all__ = [
    "DOWNLOAD_FILENAME",
    "DraftRecord",
    "DraftStore",
    "FormData",
    "FormFillService",
    "JsonDraftStore",
    "PdfGenerationError",
    "build_draft_store",
]
