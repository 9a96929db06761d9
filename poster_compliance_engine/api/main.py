import logging
from functools import lru_cache
from typing import Any, Dict, List

from fastapi import Depends, FastAPI, File, UploadFile

from poster_compliance_engine.validation.llm_validator import (
    PosterValidator,
    build_poster_validator,
)

logger = logging.getLogger(__name__)

app = FastAPI(title="Election Poster Compliance API")

DEFAULT_MIME_TYPE = "image/jpeg"


@lru_cache
def get_poster_validator() -> PosterValidator:
    return build_poster_validator()


def _read_upload(upload: UploadFile) -> tuple[bytes, str]:
    content = upload.file.read()
    mime_type = upload.content_type or DEFAULT_MIME_TYPE
    if not mime_type.startswith("image/"):
        mime_type = DEFAULT_MIME_TYPE
    logger.info(
        "Received poster filename=%s bytes=%s mime_type=%s",
        upload.filename,
        len(content),
        mime_type,
    )
    return content, mime_type


@app.get("/health")
def health():
    return {"status": "ok"}


@app.post("/api/validate")
def validate_poster(
    file: UploadFile = File(...),
    validator: PosterValidator = Depends(get_poster_validator),
) -> Dict[str, Any]:
    image_bytes, mime_type = _read_upload(file)
    result = validator.validate(image_bytes, mime_type)
    return result.to_response()


@app.post("/api/validate/batch")
def validate_posters(
    files: List[UploadFile] = File(...),
    validator: PosterValidator = Depends(get_poster_validator),
) -> Dict[str, List[Dict[str, Any]]]:
    images = [_read_upload(upload) for upload in files]
    results = validator.validate_many(images)
    return {"results": [result.to_response() for result in results]}
