from dotenv import load_dotenv

load_dotenv(".env.local"); load_dotenv()  # also loads .env if present

import logging  # noqa: E402
import os  # noqa: E402

from fastapi import FastAPI, HTTPException, Response  # noqa: E402
from fastapi.middleware.cors import CORSMiddleware  # noqa: E402
from pydantic import BaseModel, ConfigDict, Field  # noqa: E402
from pydantic.alias_generators import to_camel  # noqa: E402

from docfiller import (  # noqa: E402
    DOWNLOAD_FILENAME,
    FormData,
    FormFillService,
    PdfGenerationError,
    build_draft_store,
)

logging.basicConfig(
    level=os.getenv("DOCFILLER_LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("docfiller.api")

app = FastAPI(title="DocFiller")
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        o.strip()
        for o in os.getenv("DOCFILLER_CORS_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173").split(",")
        if o.strip()
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

fill_service = FormFillService.from_env()
draft_store = build_draft_store(os.getenv("DOCFILLER_DRAFT_STORE", "memory"))


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DraftSaveRequest(ApiModel):
    user_id: str = Field(min_length=1)
    form_data: dict


class PDFGenerateRequest(ApiModel):
    form_data: FormData


@app.get("/health")
def health():
    return {"status": "ok"}


# --- Draft endpoints ----------------------------------------------------------


@app.get("/api/form/{user_id}")
def get_form(user_id: str):
    record = draft_store.get(user_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Form data not found")
    return record.model_dump(mode="json", by_alias=True)


@app.post("/api/form")
def save_form(req: DraftSaveRequest):
    try:
        record = draft_store.save(req.user_id, req.form_data)
    except OSError as exc:
        logger.error("Could not save draft for %s: %s", req.user_id, exc, exc_info=True)
        raise HTTPException(status_code=500, detail="Internal server error") from exc
    return record.model_dump(mode="json", by_alias=True)


# --- PDF endpoints ------------------------------------------------------------


@app.post("/api/generate-pdf")
def generate_pdf(req: PDFGenerateRequest):
    try:
        pdf_bytes = fill_service.generate(req.form_data)
    except PdfGenerationError as exc:
        raise HTTPException(status_code=500, detail="PDF generation failed") from exc

    headers = {"Content-Disposition": f'attachment; filename="{DOWNLOAD_FILENAME}"'}
    return Response(content=pdf_bytes, media_type="application/pdf", headers=headers)


@app.get("/api/template/fields")
def template_fields():
    try:
        scan = fill_service.template_fields()
    except PdfGenerationError as exc:
        raise HTTPException(status_code=500, detail="Template not available") from exc
    return {"mapping": fill_service.mapping.version, "scan": scan}
