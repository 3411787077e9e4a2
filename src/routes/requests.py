from fastapi import APIRouter, Depends, HTTPException, Header, Query, status
from typing import List, Optional
from src.core.dependencies import get_matching_engine, get_request_store
from src.models.schemas import ActionResult, HelpRequestOut, ResponseOut
from src.services.matching_engine import MatchingEngine
from src.services.request_store import RequestStore
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/requests", tags=["Requests"])


@router.get("", response_model=List[HelpRequestOut])
def browse_requests(
    category: Optional[str] = Query(None, description="Category filter, e.g. 'children'"),
    region: Optional[str] = Query(None, description="Region filter, e.g. 'CAO'"),
    matching: MatchingEngine = Depends(get_matching_engine)
):
    """Open requests, highest rating first then oldest first. Contact phones are never listed."""
    return [HelpRequestOut.from_request(r) for r in matching.browse(category, region)]


@router.get("/{request_id}", response_model=HelpRequestOut)
def get_request(
    request_id: int,
    x_user_id: Optional[str] = Header(None),
    store: RequestStore = Depends(get_request_store),
    matching: MatchingEngine = Depends(get_matching_engine)
):
    request = store.find_by_id(request_id)
    if not request:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Request not found")

    disclose = x_user_id is not None and (
        request.author_id == x_user_id or matching.has_responded(x_user_id, request_id)
    )
    return HelpRequestOut.from_request(request, disclose_phone=disclose)


@router.post("/{request_id}/reserve", response_model=HelpRequestOut)
def reserve_request(
    request_id: int,
    x_user_id: str = Header(...),
    store: RequestStore = Depends(get_request_store),
    matching: MatchingEngine = Depends(get_matching_engine)
):
    """Claims the request for the caller and returns it with the author's phone."""
    if matching.has_responded(x_user_id, request_id):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Already responded to this request")

    if not store.find_by_id(request_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Request not found")

    if not matching.reserve(request_id, x_user_id):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Request is already reserved")

    return HelpRequestOut.from_request(store.find_by_id(request_id), disclose_phone=True)


@router.post("/{request_id}/cancel", response_model=ActionResult)
def cancel_reservation(
    request_id: int,
    x_user_id: str = Header(...),
    matching: MatchingEngine = Depends(get_matching_engine)
):
    if not matching.cancel(request_id, x_user_id):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Request is not reserved by this user")
    return ActionResult(success=True, message="Reservation cancelled")


@router.delete("/{request_id}", response_model=ActionResult)
def delete_request(
    request_id: int,
    x_user_id: str = Header(...),
    store: RequestStore = Depends(get_request_store)
):
    if not store.delete(request_id, x_user_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Request not found")
    return ActionResult(success=True, message="Request deleted")


@router.get("/{request_id}/responses", response_model=List[ResponseOut])
def list_request_responses(
    request_id: int,
    x_user_id: str = Header(...),
    store: RequestStore = Depends(get_request_store),
    matching: MatchingEngine = Depends(get_matching_engine)
):
    """Active responses to a request; visible to its author only."""
    request = store.find_by_id(request_id)
    if not request:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Request not found")
    if request.author_id != x_user_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only the author can see responses")

    return [ResponseOut.model_validate(r) for r in matching.request_responses(request_id)]
