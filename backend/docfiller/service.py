"""
High-level service that exposes form filling to the FastAPI layer.

Responsibilities
----------------
* load the declaration template (local file or S3) and cache its bytes
* run the section fillers against a fresh document per request
* flatten and serialize the result
"""

from __future__ import annotations

import datetime as dt
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple, Union

import boto3
from cachetools import TTLCache

from .fillers import FieldWriter, Outcome, WriteResult, fill_all, summarize
from .mapping import DEFAULT_MAPPING, TemplateMapping, load_mapping
from .pdf_utils import PdfFormDocument
from .schema import FormData
from .template_scanner import TemplateScanner

logger = logging.getLogger(__name__)

DEFAULT_TEMPLATE_PATH = Path(__file__).resolve().parent / "assets" / "original-form.pdf"
DOWNLOAD_FILENAME = "erklaerung_selbststaendige_arbeit.pdf"


class PdfGenerationError(RuntimeError):
    """Fatal failure while loading the template or writing the filled PDF."""

    def __init__(self, message: str = "PDF generation failed"):
        super().__init__(message)


@dataclass
class FillReport:
    results: List[WriteResult] = field(default_factory=list)

    @property
    def written(self) -> List[WriteResult]:
        return [r for r in self.results if r.outcome is Outcome.WRITTEN]

    @property
    def failures(self) -> List[WriteResult]:
        return [r for r in self.results if not r.ok]

    def summary(self) -> Dict[str, int]:
        return summarize(self.results)


class FormFillService:
    def __init__(
        self,
        template_path: Optional[Union[str, Path]] = None,
        mapping: Optional[TemplateMapping] = None,
        s3_bucket: Optional[str] = None,
        s3_key: Optional[str] = None,
        s3_client=None,
        cache_ttl: int = 3600,
        document_loader: Callable[[bytes], PdfFormDocument] = PdfFormDocument.load,
        today: Callable[[], dt.date] = dt.date.today,
    ):
        self.template_path = Path(template_path or DEFAULT_TEMPLATE_PATH)
        self.mapping = mapping or load_mapping()
        self.s3_bucket = s3_bucket
        self.s3_key = s3_key or self.mapping.template_file
        self.s3 = s3_client
        if self.s3_bucket and self.s3 is None:
            self.s3 = boto3.client("s3")

        self._template_cache: TTLCache = TTLCache(maxsize=4, ttl=cache_ttl)
        self._load_document = document_loader
        self._today = today

    @classmethod
    def from_env(cls) -> "FormFillService":
        mapping = load_mapping(os.getenv("DOCFILLER_MAPPING", DEFAULT_MAPPING))
        return cls(
            template_path=os.getenv("DOCFILLER_TEMPLATE_PATH") or None,
            mapping=mapping,
            s3_bucket=os.getenv("DOCFILLER_TEMPLATE_S3_BUCKET") or None,
            s3_key=os.getenv("DOCFILLER_TEMPLATE_S3_KEY") or None,
            cache_ttl=int(os.getenv("DOCFILLER_TEMPLATE_CACHE_TTL", "3600")),
        )

    # ------------------------------------------------------------------
    # Template access
    # ------------------------------------------------------------------
    def load_template(self) -> bytes:
        cached = self._template_cache.get("template")
        if cached is not None:
            return cached

        if self.s3_bucket:
            try:
                obj = self.s3.get_object(Bucket=self.s3_bucket, Key=self.s3_key)
                data = obj["Body"].read()
            except Exception as exc:
                logger.error("Could not fetch template s3://%s/%s: %s", self.s3_bucket, self.s3_key, exc)
                raise PdfGenerationError() from exc
        else:
            if not self.template_path.exists():
                logger.error("Template %s not found", self.template_path)
                raise PdfGenerationError()
            with self.template_path.open("rb") as f:
                data = f.read()

        self._template_cache["template"] = data
        logger.info("Loaded template (%d bytes)", len(data))
        return data

    def template_fields(self) -> Dict:
        return TemplateScanner().scan_template(self.load_template())

    # ------------------------------------------------------------------
    # Filling
    # ------------------------------------------------------------------
    def fill_form(self, template_bytes: bytes, submission: Union[FormData, Dict]) -> bytes:
        """Fill `template_bytes` with `submission` and return the flattened PDF."""
        pdf_bytes, _ = self.fill_form_with_report(template_bytes, submission)
        return pdf_bytes

    def fill_form_with_report(
        self,
        template_bytes: bytes,
        submission: Union[FormData, Dict],
    ) -> Tuple[bytes, FillReport]:
        form_data = submission if isinstance(submission, FormData) else FormData.model_validate(submission)

        try:
            document = self._load_document(template_bytes)
            form = document.get_form()
        except Exception as exc:
            logger.error("PDF generation error while loading template: %s", exc, exc_info=True)
            raise PdfGenerationError() from exc

        writer = FieldWriter(form, self.mapping)
        report = FillReport(fill_all(writer, form_data, self._today()))

        try:
            document.flatten()
            pdf_bytes = document.save()
        except Exception as exc:
            logger.error("PDF generation error while saving: %s", exc, exc_info=True)
            raise PdfGenerationError() from exc

        summary = report.summary()
        logger.info(
            "Filled declaration with mapping %s: %d written, %d skipped, %d missing, %d failed",
            self.mapping.version,
            summary["written"],
            summary["skipped"],
            summary["missing"],
            summary["failed"],
        )
        for failure in report.failures:
            logger.debug("  %s -> %s (%s)", failure.target, failure.field, failure.outcome.value)
        return pdf_bytes, report

    def generate(self, submission: Union[FormData, Dict]) -> bytes:
        return self.fill_form(self.load_template(), submission)
