"""Connected platform accounts"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.security import AuthContext, require_auth
from app.db.session import get_db
from app.schemas.connections import ConnectionResponse
from app.services.oauth import service as oauth_service

router = APIRouter(prefix="/api/connections", tags=["connections"])


@router.get("")
def list_connections(auth: AuthContext = Depends(require_auth), db: Session = Depends(get_db)):
    connections = oauth_service.list_connections(auth, db)
    return {"connections": [ConnectionResponse.model_validate(c).model_dump(mode="json") for c in connections]}
