"""
Curriculum Service - curriculum analysis, instructional material generation
and PDF export over HTTP.
"""

import json
import logging
import sys
import traceback
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Dict, Optional

import uvicorn
from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse, Response, StreamingResponse
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

sys.path.append(str(Path(__file__).parent.parent))

from shared.config import Settings, get_settings
from shared.errors import classify_error
from shared.llm_client import UnifiedAIService, get_ai_service
from shared.models import (
    AnalyzeCurriculumRequest,
    ExportPdfRequest,
    GammaEnhanceRequest,
    GenerateSuiteRequest,
    GradeLevel,
    HealthCheck,
    ParseDocumentRequest,
    StandardsFramework,
)
from shared.pdf_export import render_suite_pdf, suite_to_html
from shared.supabase_store import SuiteRepository, get_suite_repository

from .analysis_stream import analyze_curriculum_comprehensive, stream_curriculum_analysis
from .gamma import GammaProxyError, enhance_with_gamma
from .orchestration import generate_with_orchestration

settings = get_settings()

logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))
logger = logging.getLogger(__name__)

SUPPORTED_MIME_TYPES = [
    "application/pdf",
    "image/png",
    "image/jpeg",
    "image/jpg",
    "image/gif",
    "image/webp",
]
GRADE_LEVELS = {g.value for g in GradeLevel}
FRAMEWORKS = {f.value for f in StandardsFramework}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifespan - startup and shutdown events"""
    ai = get_ai_service()
    providers = [p.value for p in ai.get_available_providers()]
    if providers:
        logger.info("Curriculum Service started with providers: %s", ", ".join(providers))
    else:
        logger.warning("Curriculum Service started without any AI provider configured")
    yield
    logger.info("Shutting down Curriculum Service")


app = FastAPI(
    title="Curriculum Service",
    description="Curriculum analysis, instructional suite generation and export",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


# Dependencies
def get_app_settings() -> Settings:
    return get_settings()


def get_ai() -> UnifiedAIService:
    return get_ai_service()


def get_repository(app_settings: Settings = Depends(get_app_settings)) -> Optional[SuiteRepository]:
    return get_suite_repository(app_settings)


class RequestError(Exception):
    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def error_response(message: str, status_code: int, exc: Optional[BaseException] = None) -> JSONResponse:
    body: Dict[str, Any] = {"error": message}
    if exc is not None and get_settings().debug:
        body["details"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return JSONResponse(content=body, status_code=status_code)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 405:
        return error_response("Method not allowed", 405)
    return error_response(str(exc.detail), exc.status_code)


@app.exception_handler(RequestError)
async def request_error_handler(request: Request, exc: RequestError):
    return error_response(exc.message, exc.status_code)


async def read_body(request: Request) -> Dict[str, Any]:
    try:
        body = await request.json()
    except ValueError:
        raise RequestError("Invalid JSON body")
    if not isinstance(body, dict):
        raise RequestError("Invalid JSON body")
    return body


def parse_body(model, body: Dict[str, Any]):
    try:
        return model.model_validate(body)
    except ValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first.get("loc", ()))
        raise RequestError(f"Invalid request: {location} {first.get('msg', '')}".strip())


def validate_analysis_request(body: Dict[str, Any]) -> AnalyzeCurriculumRequest:
    req = parse_body(AnalyzeCurriculumRequest, body)
    if not req.raw_text or not req.grade_level or not req.standards_framework:
        raise RequestError("rawText, gradeLevel, and standardsFramework are required")
    if req.grade_level not in GRADE_LEVELS:
        raise RequestError("Invalid gradeLevel")
    if req.standards_framework not in FRAMEWORKS:
        raise RequestError("Invalid standardsFramework")
    return req


@app.options("/api/{path:path}")
async def preflight(path: str):
    return Response(status_code=200)


@app.get("/")
async def root():
    return {"service": settings.service_name, "status": "running", "version": app.version}


@app.get("/health")
async def health_check(ai: UnifiedAIService = Depends(get_ai), app_settings: Settings = Depends(get_app_settings)):
    health = HealthCheck(
        service=app_settings.service_name,
        version=app.version,
        providers=ai.get_available_providers(),
    )
    return health.model_dump(mode="json")


@app.get("/api/providers")
async def list_providers(ai: UnifiedAIService = Depends(get_ai)):
    providers = ai.get_available_providers()
    return {
        "providers": [p.value for p in providers],
        "default": ai.get_default_provider().value if providers else None,
    }


@app.post("/api/curriculum/analyze")
async def analyze_curriculum(request: Request, ai: UnifiedAIService = Depends(get_ai)):
    req = validate_analysis_request(await read_body(request))
    try:
        analysis = await analyze_curriculum_comprehensive(
            ai, req.raw_text, req.grade_level, req.standards_framework
        )
    except Exception as e:
        logger.error("Curriculum analysis failed: %s", e)
        return error_response(classify_error(e), 500, e)
    return {"success": True, "analysis": analysis.to_wire()}


@app.post("/api/curriculum/analyze-stream")
async def analyze_curriculum_stream(request: Request, ai: UnifiedAIService = Depends(get_ai)):
    req = validate_analysis_request(await read_body(request))

    async def event_generator():
        stream = stream_curriculum_analysis(ai, req.raw_text, req.grade_level, req.standards_framework)
        try:
            async for chunk in stream:
                if await request.is_disconnected():
                    logger.info("Client disconnected, stopping analysis stream")
                    return
                yield f"data: {json.dumps(chunk.to_wire())}\n\n"
                if chunk.is_terminal:
                    break
            yield "data: [DONE]\n\n"
        finally:
            await stream.aclose()

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache, no-transform",
            "X-Accel-Buffering": "no",
            "Connection": "keep-alive",
        },
    )


@app.post("/api/documents/parse")
async def parse_document(request: Request, ai: UnifiedAIService = Depends(get_ai)):
    req = parse_body(ParseDocumentRequest, await read_body(request))
    if not req.base64_data or not req.mime_type:
        raise RequestError("base64Data and mimeType are required")
    if req.mime_type not in SUPPORTED_MIME_TYPES:
        raise RequestError(f"Invalid mimeType. Supported types: {', '.join(SUPPORTED_MIME_TYPES)}")

    data = req.base64_data
    # Strip a data URL prefix ("data:application/pdf;base64,")
    if data.startswith("data:") and "," in data:
        data = data.split(",", 1)[1]

    try:
        nodes = await ai.analyze_document(data, req.mime_type, req.grade_level, req.standards_framework)
    except Exception as e:
        logger.error("Document parsing failed: %s", e)
        return error_response(classify_error(e), 500, e)
    return {"success": True, "nodes": [n.to_wire() for n in nodes], "count": len(nodes)}


@app.post("/api/integrations/gamma/enhance")
async def gamma_enhance(request: Request, app_settings: Settings = Depends(get_app_settings)):
    req = parse_body(GammaEnhanceRequest, await read_body(request))
    try:
        return await enhance_with_gamma(app_settings, req)
    except GammaProxyError as e:
        return error_response(e.message, e.status_code, e)


@app.post("/api/suites/generate")
async def generate_suite(
    request: Request,
    ai: UnifiedAIService = Depends(get_ai),
    repository: Optional[SuiteRepository] = Depends(get_repository),
):
    req = parse_body(GenerateSuiteRequest, await read_body(request))
    try:
        result = await generate_with_orchestration(
            ai,
            req.node,
            req.output_type,
            req.bloom_level,
            req.differentiation,
            req.aesthetic,
            branding=req.branding,
            page_count=req.page_count,
            grade=req.grade_level,
            standards=req.standards,
            options=req.options,
            long_document_text=req.long_document_text,
            inspiration=req.inspiration,
        )
    except Exception as e:
        logger.error("Suite generation failed: %s", e)
        return error_response(classify_error(e), 500, e)

    if req.persist:
        if repository is None:
            logger.warning("Persistence requested but Supabase is not configured")
        else:
            try:
                await repository.save_suite(result.suite)
            except Exception as e:
                logger.warning("Could not save suite %s: %s", result.suite.id, e)
    return result.to_wire()


@app.post("/api/suites/export-pdf")
async def export_pdf(request: Request):
    req = parse_body(ExportPdfRequest, await read_body(request))
    if req.format == "html":
        return HTMLResponse(suite_to_html(req.suite, include_teacher_key=req.include_teacher_key))
    try:
        pdf = render_suite_pdf(req.suite, include_teacher_key=req.include_teacher_key)
    except Exception as e:
        logger.error("PDF export failed: %s", e)
        return error_response(f"PDF export failed: {e}", 500, e)
    filename = "".join(c if c.isalnum() or c in "-_" else "_" for c in req.suite.title) or "suite"
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}.pdf"'},
    )


@app.get("/api/suites")
async def list_suites(repository: Optional[SuiteRepository] = Depends(get_repository)):
    if repository is None:
        return error_response("Suite storage is not configured", 503)
    try:
        suites = await repository.load_suites()
    except Exception as e:
        logger.error("Loading suites failed: %s", e)
        return error_response(f"Loading suites failed: {e}", 500, e)
    return {"success": True, "suites": [s.to_wire() for s in suites], "count": len(suites)}


@app.delete("/api/suites/{suite_id}")
async def delete_suite(suite_id: str, repository: Optional[SuiteRepository] = Depends(get_repository)):
    if repository is None:
        return error_response("Suite storage is not configured", 503)
    try:
        await repository.delete_suite(suite_id)
    except Exception as e:
        logger.error("Deleting suite %s failed: %s", suite_id, e)
        return error_response(f"Deleting suite failed: {e}", 500, e)
    return {"success": True, "id": suite_id}


if __name__ == "__main__":
    uvicorn.run(
        "curriculum_service.main:app",
        host="0.0.0.0",
        port=settings.service_port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
