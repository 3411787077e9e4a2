from fastapi import APIRouter, Depends, HTTPException, Header, status
from typing import List
from src.core.dependencies import get_matching_engine, get_request_store
from src.models.schemas import HelpRequestOut, ResponseOut, ResponseViewOut
from src.services.matching_engine import MatchingEngine
from src.services.request_store import RequestStore

router = APIRouter(prefix="/api/users", tags=["Users"])


def require_owner(user_id: str, x_user_id: str = Header(...)) -> str:
    """Own lists carry contact phones; only the user themselves may read them."""
    if x_user_id != user_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not allowed to see another user's data")
    return user_id


@router.get("/{user_id}/requests", response_model=List[HelpRequestOut])
def list_user_requests(owner_id: str = Depends(require_owner), store: RequestStore = Depends(get_request_store)):
    """All requests of the user, newest first, with their own phone."""
    return [HelpRequestOut.from_request(r, disclose_phone=True) for r in store.list_by_author(owner_id)]


@router.get("/{user_id}/responses", response_model=List[ResponseViewOut])
def list_user_responses(owner_id: str = Depends(require_owner), matching: MatchingEngine = Depends(get_matching_engine)):
    """Active responses of the user; `request` is null once the request was deleted."""
    return [
        ResponseViewOut(
            response=ResponseOut.model_validate(view.response),
            request=HelpRequestOut.from_request(view.request, disclose_phone=True) if view.request_exists else None
        )
        for view in matching.responses_with_requests(owner_id)
    ]
