# merchantconnect/routers/configs.py
from fastapi import APIRouter, Depends, HTTPException, status
from sqlmodel import Session

from merchantconnect.core.auth import ADMIN_EMAILS_DOC, require_admin
from merchantconnect.database import get_session
from merchantconnect.repositories.config_repo import ConfigRepository
from merchantconnect.schemas.config import ConfigRead, ConfigWrite

router = APIRouter(
    prefix="/configs",
    tags=["Configs"],
    dependencies=[Depends(require_admin)],
)

repo = ConfigRepository()


@router.get("", response_model=list[str])
def list_configs(session: Session = Depends(get_session)):
    """List config document ids (admin only)."""
    return repo.list_ids(session)


@router.get("/{doc_id}", response_model=ConfigRead)
def read_config(doc_id: str, session: Session = Depends(get_session)):
    """Read one config document (admin only)."""
    doc = repo.get(session, doc_id)
    if not doc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Config document not found",
        )
    return ConfigRead(id=doc.id, data=doc.data or {})


@router.put("/{doc_id}", response_model=ConfigRead)
def replace_config(
    doc_id: str,
    payload: ConfigWrite,
    session: Session = Depends(get_session),
):
    """
    Replace a config document entirely (admin only).

    The admin allow-list must stay a list of emails; an update that would
    lock everyone out is rejected.
    """
    if doc_id == ADMIN_EMAILS_DOC:
        emails = payload.data.get("emails")
        if not isinstance(emails, list) or not any(
            isinstance(e, str) and e.strip() for e in emails
        ):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="adminEmails must contain a non-empty 'emails' list",
            )
    doc = repo.replace(session, doc_id, payload.data)
    return ConfigRead(id=doc.id, data=doc.data or {})
