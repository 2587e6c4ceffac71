from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from pos.dependencies import get_db, require_auth, service_errors
from pos.schemas.catalog import CategoryCreate, CategoryRead, CategoryUpdate
from pos.services import catalog_service

router = APIRouter(prefix="/categories", tags=["Categories"])


@router.get("", response_model=list[CategoryRead])
def list_categories(db: Session = Depends(get_db)):
    return catalog_service.list_categories(db)


@router.post("", response_model=CategoryRead, status_code=201)
def create_category(
    payload: CategoryCreate,
    db: Session = Depends(get_db),
    _auth=Depends(require_auth),
):
    with service_errors():
        return catalog_service.create_category(db, payload.model_dump())


@router.put("/{category_id}", response_model=CategoryRead)
def update_category(
    category_id: str,
    payload: CategoryUpdate,
    db: Session = Depends(get_db),
    _auth=Depends(require_auth),
):
    with service_errors():
        return catalog_service.update_category(
            db, category_id, payload.model_dump(exclude_unset=True)
        )


@router.delete("/{category_id}", status_code=204)
def delete_category(
    category_id: str,
    db: Session = Depends(get_db),
    _auth=Depends(require_auth),
):
    with service_errors():
        catalog_service.delete_category(db, category_id)


__all__ = ["router"]
