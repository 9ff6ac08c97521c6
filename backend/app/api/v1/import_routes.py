"""Excel bulk import endpoints: templates, exports, uploads."""
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, File, HTTPException, Query, Request, UploadFile, status
from fastapi.responses import Response

from app.core.config import settings
from app.core.deps import require_role
from app.core.limiter import limiter
from app.imports.enrichment import EnrichmentDispatcher, get_dispatcher
from app.imports.entities.base import ImportHandler
from app.imports.errors import StructuralImportError
from app.imports.pipeline import build_export, build_template, run_import
from app.imports.registry import get_handler, list_handlers
from app.imports.template import example_value
from app.schemas.imports import EntityImportConfigOut, ImportFieldOut, ImportOutcome
from app.services.import_store import SqlImportStore

logger = logging.getLogger(__name__)

router = APIRouter()

# ─── Constants ───

IMPORT_ROLES = ("owner", "admin", "manager")
XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


# ─── Dependencies ───

def get_import_store() -> SqlImportStore:
    return SqlImportStore()


def get_enrichment_dispatcher() -> EnrichmentDispatcher:
    return get_dispatcher()


def _resolve_handler(entity_type: str) -> ImportHandler:
    handler = get_handler(entity_type)
    if handler is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown import entity type '{entity_type}'",
        )
    return handler


def _xlsx_response(content: bytes, filename: str) -> Response:
    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


def _config_out(handler: ImportHandler) -> EntityImportConfigOut:
    config = handler.config
    return EntityImportConfigOut(
        entity_type=config.entity_type,
        natural_key=config.natural_key,
        fields=[
            ImportFieldOut(
                name=f.name,
                label=f.label,
                required=f.required,
                type=f.type.value,
                description=f.description,
                example=example_value(f),
                choices=list(f.choices),
                translate=f.name in config.translate_fields,
            )
            for f in config.fields
        ],
        reference_sheets=[s.title for s in config.reference_sheets],
    )


# ─── GET /import/entities ───

@router.get("/entities", response_model=list[EntityImportConfigOut], summary="List importable entity types")
async def list_import_entities(
    current_user: Annotated[object, Depends(require_role(*IMPORT_ROLES))],
):
    return [_config_out(h) for h in list_handlers()]


# ─── GET /import/{entity_type}/template ───

@router.get("/{entity_type}/template", summary="Download a sample import workbook")
async def download_template(
    entity_type: str,
    current_user: Annotated[object, Depends(require_role(*IMPORT_ROLES))],
    store: Annotated[SqlImportStore, Depends(get_import_store)],
):
    handler = _resolve_handler(entity_type)
    content = await build_template(handler, tenant_id=current_user.tenant_id, store=store)
    return _xlsx_response(content, f"{entity_type}_import_template.xlsx")


# ─── GET /import/{entity_type}/export ───

@router.get("/{entity_type}/export", summary="Download current records in import layout")
async def download_export(
    entity_type: str,
    current_user: Annotated[object, Depends(require_role(*IMPORT_ROLES))],
    store: Annotated[SqlImportStore, Depends(get_import_store)],
):
    handler = _resolve_handler(entity_type)
    content = await build_export(handler, tenant_id=current_user.tenant_id, store=store)
    return _xlsx_response(content, f"{entity_type}_export.xlsx")


# ─── POST /import/{entity_type} ───

@router.post("/{entity_type}", response_model=ImportOutcome, summary="Bulk import from an .xlsx workbook")
@limiter.limit(settings.IMPORT_RATE_LIMIT)
async def import_entities(
    request: Request,
    entity_type: str,
    current_user: Annotated[object, Depends(require_role(*IMPORT_ROLES))],
    store: Annotated[SqlImportStore, Depends(get_import_store)],
    dispatcher: Annotated[EnrichmentDispatcher, Depends(get_enrichment_dispatcher)],
    file: UploadFile = File(...),
    dry_run: bool = Query(False, description="Validate only; nothing is written or translated"),
):
    handler = _resolve_handler(entity_type)

    content = await file.read()
    if len(content) > settings.IMPORT_MAX_FILE_BYTES:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File exceeds the {settings.IMPORT_MAX_FILE_BYTES // (1024 * 1024)} MB import limit",
        )
    if not content:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Uploaded file is empty")

    try:
        outcome = await run_import(
            handler,
            content,
            tenant_id=current_user.tenant_id,
            actor_id=current_user.id,
            store=store,
            dispatcher=dispatcher,
            dry_run=dry_run,
        )
    except StructuralImportError as exc:
        logger.info("Rejected %s import from %s: %s", entity_type, file.filename, exc)
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))
    return outcome
