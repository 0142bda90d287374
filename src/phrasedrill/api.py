"""FastAPI application exposing the phrase store."""
import hmac
import logging
import time
from typing import Any, Dict, Generator, List, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from phrasedrill.config import ApiSettings, VocabularySettings, settings
from phrasedrill.errors import ExplanationError, PhraseSourceError
from phrasedrill.models.base import Database
from phrasedrill.monitoring import api_requests, error_count, request_duration
from phrasedrill.services.explanation_service import ExplanationService
from phrasedrill.services.phrase_service import PhraseService

logger = logging.getLogger(__name__)


class ValidateRequest(BaseModel):
    phraseId: int = Field(..., gt=0)
    answer: str


class ImportRequest(BaseModel):
    data: List[Dict[str, Any]]
    overwrite: bool = False


class DeletePairRequest(BaseModel):
    phraseId1: int = Field(..., gt=0)
    phraseId2: int = Field(..., gt=0)


class ExplainRequest(BaseModel):
    sourcePhraseId: int = Field(..., gt=0)
    expectedAnswerId: int = Field(..., gt=0)


def ok(data: Any) -> Dict[str, Any]:
    """Success envelope."""
    return {"success": True, "data": data}


def fail(status_code: int, message: str) -> JSONResponse:
    """Error envelope."""
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


def create_app(
    database: Database,
    explanation_service: Optional[ExplanationService] = None,
    api_settings: ApiSettings = settings.api,
    vocabulary_settings: VocabularySettings = settings.vocabulary,
) -> FastAPI:
    """Build the HTTP API around an initialized database."""
    app = FastAPI(
        title="PhraseDrill API",
        description="Phrase store, answer checking and explanations for the vocabulary trainer.",
        version="1.0.0",
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def get_db() -> Generator[Session, None, None]:
        with database.session() as db:
            yield db

    def get_service(db: Session = Depends(get_db)) -> PhraseService:
        return PhraseService(db, vocabulary_settings)

    def require_admin(authorization: Optional[str] = Header(None)) -> None:
        if not api_settings.preshared_key:
            raise HTTPException(status_code=503, detail="Admin endpoints are disabled")
        if not authorization:
            raise HTTPException(status_code=401, detail="Authorization header is required")
        scheme, _, token = authorization.partition(" ")
        if scheme.lower() != "bearer" or not token:
            raise HTTPException(status_code=401, detail="Bearer token is required")
        if not hmac.compare_digest(token, api_settings.preshared_key):
            raise HTTPException(status_code=401, detail="Invalid authorization token")

    @app.middleware("http")
    async def record_metrics(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        # Label by route template so path parameters do not create new series
        route = request.scope.get("route")
        endpoint = getattr(route, "path", None) or "unmatched"
        api_requests.labels(endpoint=endpoint).inc()
        request_duration.labels(endpoint=endpoint).observe(time.perf_counter() - start)
        return response

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        return fail(exc.status_code, str(exc.detail))

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        message = "; ".join(
            f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in exc.errors()
        )
        return fail(400, f"Validation error: {message}")

    @app.exception_handler(PhraseSourceError)
    async def source_error(request: Request, exc: PhraseSourceError):
        error_count.labels(error_type="phrase_source").inc()
        return fail(503, str(exc))

    @app.exception_handler(SQLAlchemyError)
    async def database_error(request: Request, exc: SQLAlchemyError):
        logger.error(f"Database error on {request.url.path}: {exc}")
        error_count.labels(error_type="database").inc()
        return fail(503, "Database unavailable")

    @app.get("/api/health")
    def health():
        return ok({"status": "ok", "database": database.is_initialized})

    @app.get("/api/vocabulary/random")
    def random_phrase(
        languages: Optional[str] = Query(None),
        service: PhraseService = Depends(get_service),
    ):
        if not languages:
            raise HTTPException(status_code=400, detail="Languages parameter is required")
        requested = [lang.strip() for lang in languages.split(",") if lang.strip()]
        unsupported = [lang for lang in requested if lang not in vocabulary_settings.supported_languages]
        if not requested or unsupported:
            raise HTTPException(status_code=400, detail=f"Unsupported languages: {unsupported}")
        pair = service.get_random_pair(requested)
        if pair is None:
            raise HTTPException(status_code=404, detail="No vocabulary data found")
        return ok(pair.to_dict())

    @app.get("/api/vocabulary/practice/{phrase_id}")
    def practice_phrase(phrase_id: int, service: PhraseService = Depends(get_service)):
        pair = service.get_pair(phrase_id)
        if pair is None:
            raise HTTPException(status_code=404, detail=f"Phrase {phrase_id} not found")
        return ok(pair.to_dict())

    @app.get("/api/vocabulary/phrase/{phrase_id}")
    def phrase(phrase_id: int, service: PhraseService = Depends(get_service)):
        found = service.get_phrase(phrase_id)
        if found is None:
            raise HTTPException(status_code=404, detail=f"Phrase {phrase_id} not found")
        translations = service.get_translations(phrase_id)
        data = {
            "id": found.id,
            "phrase": found.phrase,
            "language": found.language,
            "relativeFrequency": found.relative_frequency,
            "category": found.category,
            "translations": [t.to_dict() for t in translations],
        }
        return ok(data)

    @app.get("/api/vocabulary/similar/{phrase_id}")
    def similar(
        phrase_id: int,
        limit: Optional[int] = Query(None, gt=0),
        service: PhraseService = Depends(get_service),
    ):
        if service.get_phrase(phrase_id) is None:
            raise HTTPException(status_code=404, detail=f"Phrase {phrase_id} not found")
        return ok([s.to_dict() for s in service.get_similar(phrase_id, limit=limit)])

    @app.get("/api/vocabulary/stats")
    def stats(service: PhraseService = Depends(get_service)):
        return ok(service.get_stats())

    @app.post("/api/vocabulary/validate")
    def validate_answer(body: ValidateRequest, service: PhraseService = Depends(get_service)):
        if service.get_phrase(body.phraseId) is None:
            raise HTTPException(status_code=404, detail=f"Phrase {body.phraseId} not found")
        return ok(service.validate_answer(body.phraseId, body.answer))

    @app.get("/api/vocabulary/search")
    def search(q: str = Query(..., min_length=1), service: PhraseService = Depends(get_service)):
        return ok(service.search_pairs(q))

    @app.get("/api/vocabulary/categories")
    def categories(service: PhraseService = Depends(get_service)):
        return ok(service.get_categories())

    @app.get("/api/vocabulary/orphans")
    def orphans(service: PhraseService = Depends(get_service)):
        return ok([p.to_dict() for p in service.list_orphans()])

    @app.post("/api/vocabulary/import", dependencies=[Depends(require_admin)])
    def import_vocabulary(body: ImportRequest, service: PhraseService = Depends(get_service)):
        logger.info(f"Import of {len(body.data)} pairs requested (overwrite={body.overwrite})")
        result = service.import_pairs(body.data, overwrite=body.overwrite)
        return ok(result.to_dict())

    @app.delete("/api/vocabulary/phrase/{phrase_id}", dependencies=[Depends(require_admin)])
    def delete_phrase(phrase_id: int, service: PhraseService = Depends(get_service)):
        if not service.delete_phrase(phrase_id):
            raise HTTPException(status_code=404, detail=f"Phrase {phrase_id} not found")
        return ok({"deleted": phrase_id})

    @app.post("/api/vocabulary/delete-pair", dependencies=[Depends(require_admin)])
    def delete_pair(body: DeletePairRequest, service: PhraseService = Depends(get_service)):
        removed = service.delete_similarity(body.phraseId1, body.phraseId2)
        if not removed:
            raise HTTPException(status_code=404, detail="No connection between these phrases")
        return ok({"removed": removed})

    @app.post("/api/explain", dependencies=[Depends(require_admin)])
    def explain(body: ExplainRequest, service: PhraseService = Depends(get_service)):
        if explanation_service is None:
            raise HTTPException(status_code=503, detail="Explanations are not configured")
        try:
            explanation = explanation_service.explain_phrases(
                service, body.sourcePhraseId, body.expectedAnswerId
            )
        except LookupError as e:
            raise HTTPException(status_code=404, detail=str(e))
        except ExplanationError as e:
            raise HTTPException(status_code=502, detail=str(e))
        return ok(explanation.to_dict())

    return app
