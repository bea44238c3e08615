"""HTTP endpoint for CSV bet imports.

Run with:
    uvicorn betledger.api:app --port 8000
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.datastructures import UploadFile

from .config import logger
from .importer import CsvImportError, MissingFileError, import_csv

app = FastAPI(title="Bet Ledger CSV Import API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
async def health_check():
    return {"status": "healthy", "service": "csv-import"}


@app.post("/csv-import")
async def csv_import(request: Request):
    """Import bets from the multipart ``file`` field.

    Returns {"imported": n} on success. Every failure is answered with a JSON
    body carrying an ``error`` message and, where available, ``details`` and
    ``hint``.
    """
    try:
        form = await request.form()
        upload = form.get("file")
        if not isinstance(upload, UploadFile):
            raise MissingFileError()

        raw = await upload.read()
        try:
            text = raw.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise CsvImportError("CSV file must be UTF-8 encoded") from e

        imported = import_csv(text)
        logger.info(f"CSV import of {upload.filename}: {imported} bets")
        return {"imported": imported}

    except CsvImportError as e:
        if e.status_code >= 500:
            logger.error(f"CSV import failed: {e.message}")
        else:
            logger.warning(f"CSV import rejected: {e.message}")
        return JSONResponse(status_code=e.status_code, content=e.to_dict())

    except Exception as e:
        logger.exception(f"Unexpected error during CSV import: {e}")
        return JSONResponse(status_code=500, content={"error": str(e) or "Unexpected error"})


@app.api_route("/csv-import", methods=["GET", "PUT", "PATCH", "DELETE", "HEAD"])
async def csv_import_wrong_method():
    return JSONResponse(status_code=405, content={"error": "Only POST supported"})
