from dataclasses import asdict

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from pos.dependencies import get_db, require_auth, service_errors
from pos.schemas.transfer import ExportFileRequest, ImportRequest
from pos.services import export_service, import_service

router = APIRouter(prefix="/data", tags=["Data"])


def _result_payload(result):
    return {
        "success": result.success,
        "message": result.message,
        "dry_run": result.dry_run,
        "imported": result.imported,
        "updated": result.updated,
        "skipped": result.skipped,
        "errors": result.errors,
        "counts": {section: asdict(counts) for section, counts in result.counts.items()},
        "issues": [asdict(issue) for issue in result.issues],
        "conflicts": [asdict(conflict) for conflict in result.conflicts],
        "summary": import_service.generate_import_summary(result),
    }


@router.get("/export")
def export_data(
    data_type: str = "all",
    db: Session = Depends(get_db),
    _auth=Depends(require_auth),
):
    with service_errors():
        return export_service.build_export_document(db, data_type=data_type)


@router.post("/export/file")
def export_data_file(
    payload: ExportFileRequest,
    db: Session = Depends(get_db),
    _auth=Depends(require_auth),
):
    with service_errors():
        result = export_service.export_to_file(
            db, payload.export_dir, payload.filename, data_type=payload.data_type
        )
    return {
        "path": str(result.path),
        "filename": result.filename,
        "record_count": result.record_count,
        "file_size": result.file_size,
    }


@router.post("/import/preview")
def preview_import(
    payload: ImportRequest,
    db: Session = Depends(get_db),
    _auth=Depends(require_auth),
):
    preview = import_service.preview_import(db, payload.document)
    return {
        "validation": asdict(preview["validation"]),
        "record_counts": preview["record_counts"],
        "sample_data": preview["sample_data"],
        "conflicts": [asdict(conflict) for conflict in preview["conflicts"]],
    }


@router.post("/import")
def import_data(
    payload: ImportRequest,
    db: Session = Depends(get_db),
    _auth=Depends(require_auth),
):
    with service_errors():
        options = import_service.ImportOptions(
            conflict_resolution=payload.conflict_resolution,
            batch_size=payload.batch_size,
            dry_run=payload.dry_run,
        )
        result = import_service.import_document(db, payload.document, options)
    return _result_payload(result)


__all__ = ["router"]
