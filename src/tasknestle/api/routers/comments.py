"""Comment edit/delete endpoints."""
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ... import crud, models, schemas
from ..dependencies import get_current_user, get_db

router = APIRouter(tags=["comments"])


@router.put("/{comment_id}", response_model=schemas.ApiResponse)
def update_comment(
    comment_id: UUID,
    changes: schemas.CommentUpdate,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Edit a comment. Only its author may do this."""
    comment = crud.update_comment(db, current_user, comment_id, changes.text)
    return schemas.ApiResponse(
        message="Comment updated successfully",
        data={"comment": schemas.CommentResponse.model_validate(comment).model_dump(mode="json")},
    )


@router.delete("/{comment_id}", response_model=schemas.ApiResponse)
def delete_comment(
    comment_id: UUID,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    crud.delete_comment(db, current_user, comment_id)
    return schemas.ApiResponse(message="Comment deleted successfully")
