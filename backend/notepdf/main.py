from __future__ import annotations

from urllib.parse import quote

from fastapi import FastAPI, HTTPException, Response
from fastapi.middleware.cors import CORSMiddleware

from .config import ASSETS_DIR, RASTERIZER_URL
from .coordinator import GenerationCoordinator
from .logging_utils import get_logger
from .pdf_export import GenerationError, GenerationSuperseded, generate_pdf
from .schemas import HealthResponse, RenderRequest
from .settings import SettingsError, load_settings

log = get_logger(__name__)

app = FastAPI(title="notepdf")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Page-Count", "X-Warnings", "Content-Disposition"],
)

coordinator = GenerationCoordinator()


def _header_value(text: str) -> str:
    return text.encode("ascii", "replace").decode("ascii").replace("\r", " ").replace("\n", " ")


@app.get("/health")
def health() -> HealthResponse:
    return HealthResponse(ok=True, rasterizer="http" if RASTERIZER_URL else "local", assets_dir=str(ASSETS_DIR))


@app.post("/render")
async def render(req: RenderRequest) -> Response:
    try:
        settings = load_settings(overrides=req.settings)
    except SettingsError as e:
        raise HTTPException(status_code=500, detail=str(e)) from e

    key = req.document_id or req.title

    async def run(checkpoint):
        return await generate_pdf(req.text, settings, title=req.title, checkpoint=checkpoint)

    try:
        result = await coordinator.run(key, run)
    except GenerationSuperseded as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    except GenerationError as e:
        raise HTTPException(status_code=500, detail=str(e)) from e

    filename = quote(f"{req.title}.pdf")
    headers = {
        "X-Page-Count": str(result.page_count),
        "X-Warnings": _header_value(" | ".join(result.warnings)),
        "Content-Disposition": f"inline; filename*=UTF-8''{filename}",
    }
    return Response(content=result.pdf, media_type="application/pdf", headers=headers)
