# app/routes/message_route.py

from fastapi import APIRouter, Depends, HTTPException, Query, status
from app.database.connection import get_db
from app.models.message import (
    Conversation,
    Message,
    MessageStatus,
    MessageStatusUpdate,
    NewMessageRequest,
    ReplyRequest,
)
from app.models.user import Principal
from app.routes.firebase_auth import get_current_principal, get_optional_principal
from app.services import message_service
from typing import List, Optional
import logging

logger = logging.getLogger(__name__)
router = APIRouter()


# ==================== Conversation Routes ====================

@router.get("/conversations", response_model=List[Conversation])
async def list_conversations(
    db=Depends(get_db),
    principal: Optional[Principal] = Depends(get_optional_principal)
):
    """Conversations grouped by customer, most recent activity first"""
    return await message_service.get_conversations(db, principal)


@router.get("/conversations/{user_id}/messages", response_model=List[Message])
async def get_conversation_messages(
    user_id: str,
    db=Depends(get_db),
    principal: Optional[Principal] = Depends(get_optional_principal)
):
    return await message_service.get_conversation_thread(db, principal, user_id)


@router.post("/conversations/{user_id}/messages", status_code=status.HTTP_201_CREATED)
async def send_conversation_message(
    user_id: str,
    request: ReplyRequest,
    db=Depends(get_db),
    principal: Principal = Depends(get_current_principal)
):
    try:
        return await message_service.send_to_conversation(db, principal, user_id, request.message)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error sending message to conversation {user_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Error sending message: {str(e)}"
        )


# ==================== Message Routes ====================

@router.get("/", response_model=List[Message])
async def list_messages(
    message_status: Optional[MessageStatus] = Query(None, alias="status"),
    db=Depends(get_db),
    principal: Optional[Principal] = Depends(get_optional_principal)
):
    return await message_service.get_messages(db, principal, message_status)


@router.post("/", status_code=status.HTTP_201_CREATED)
def create_message(
    request: NewMessageRequest,
    db=Depends(get_db),
    principal: Principal = Depends(get_current_principal)
):
    try:
        return message_service.add_message(db, principal, request)
    except Exception as e:
        logger.error(f"Error adding message: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/{message_id}/reply", status_code=status.HTTP_201_CREATED)
def reply_to_message(
    message_id: str,
    request: ReplyRequest,
    db=Depends(get_db),
    principal: Principal = Depends(get_current_principal)
):
    try:
        return message_service.reply_to_message(db, principal, message_id, request.message)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error replying to message {message_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Error sending reply: {str(e)}"
        )


@router.put("/{message_id}/status")
def update_message_status(
    message_id: str,
    status_update: MessageStatusUpdate,
    db=Depends(get_db),
    principal: Principal = Depends(get_current_principal)
):
    try:
        return message_service.update_message_status(db, principal, message_id, status_update.status)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error updating message {message_id}: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))


@router.delete("/{message_id}")
def delete_message(
    message_id: str,
    db=Depends(get_db),
    principal: Principal = Depends(get_current_principal)
):
    try:
        return message_service.delete_message(db, principal, message_id)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error deleting message {message_id}: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))


# ==================== Health Check ====================

@router.get("/health")
async def messages_health_check():
    return {
        "status": "healthy",
        "service": "messages",
    }
