"""Account deletion routes"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.security import AuthContext, require_auth
from app.db.session import get_db
from app.services import account_service
from app.services.storage.object_store import ObjectStore, get_object_store

router = APIRouter(prefix="/api/account", tags=["account"])


@router.get("/delete")
def account_deletion_summary(auth: AuthContext = Depends(require_auth), db: Session = Depends(get_db)):
    """Counts of what deleting the account would remove"""
    return {"summary": account_service.account_summary(auth, db)}


@router.post("/delete")
async def delete_account(
    auth: AuthContext = Depends(require_auth),
    db: Session = Depends(get_db),
    store: ObjectStore = Depends(get_object_store)
):
    deleted = await account_service.delete_account(auth, db, store)
    return {"success": True, "deleted": deleted}
