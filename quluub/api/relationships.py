"""
quluub/api/relationships.py

Purpose: Match request endpoints

- Send, respond to and withdraw connection requests
- List matches, received and sent requests
"""

from fastapi import APIRouter, Depends

from quluub.api.deps import get_container, get_current_user_id
from quluub.core.container import ServiceContainer
from quluub.schemas.requests import RespondBody, SendRequestBody
from quluub.schemas.response import MessageResponse, RelationshipListOut, RelationshipOut, RelationshipViewOut

router = APIRouter(prefix="/relationships", tags=["Relationships"])


@router.post("/request", response_model=RelationshipOut, status_code=201)
async def send_request(
    body: SendRequestBody,
    user_id: str = Depends(get_current_user_id),
    container: ServiceContainer = Depends(get_container),
):
    relationship = await container.relationships.send_request(user_id, body.followed_user_id)
    return RelationshipOut.from_model(relationship)


@router.put("/{relationship_id}/respond", response_model=RelationshipOut)
async def respond_to_request(
    relationship_id: str,
    body: RespondBody,
    user_id: str = Depends(get_current_user_id),
    container: ServiceContainer = Depends(get_container),
):
    relationship = await container.relationships.respond(relationship_id, user_id, body.status)
    return RelationshipOut.from_model(relationship)


@router.delete("/{relationship_id}/withdraw", response_model=MessageResponse)
async def withdraw_request(
    relationship_id: str,
    user_id: str = Depends(get_current_user_id),
    container: ServiceContainer = Depends(get_container),
):
    await container.relationships.withdraw(relationship_id, user_id)
    return MessageResponse(message="Request withdrawn successfully")


@router.get("/matches", response_model=RelationshipListOut)
async def get_matches(
    user_id: str = Depends(get_current_user_id),
    container: ServiceContainer = Depends(get_container),
):
    views = await container.relationships.get_matches(user_id)
    return RelationshipListOut(items=[RelationshipViewOut.from_view(v) for v in views], count=len(views))


@router.get("/pending", response_model=RelationshipListOut)
async def get_pending(
    user_id: str = Depends(get_current_user_id),
    container: ServiceContainer = Depends(get_container),
):
    views = await container.relationships.get_pending(user_id)
    return RelationshipListOut(items=[RelationshipViewOut.from_view(v) for v in views], count=len(views))


@router.get("/sent", response_model=RelationshipListOut)
async def get_sent(
    user_id: str = Depends(get_current_user_id),
    container: ServiceContainer = Depends(get_container),
):
    views = await container.relationships.get_sent(user_id)
    return RelationshipListOut(items=[RelationshipViewOut.from_view(v) for v in views], count=len(views))
