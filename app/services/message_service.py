from fastapi import HTTPException, status
from google.cloud.firestore import FieldFilter, Query, SERVER_TIMESTAMP
from app.config.settings import settings
from app.models.message import (
    Conversation,
    LegacyChatRecord,
    Message,
    NewMessageRequest,
    PrimaryMessageRecord,
)
from app.models.user import Principal
from app.services.refresh_service import refresh_coordinator
from app.utils.conversation_builder import (
    build_conversations,
    conversation_messages,
    find_conversation,
    normalize_legacy,
    normalize_primary,
)
from app.utils.documents import parse_documents
from typing import List, Optional, Tuple
import asyncio, logging

logger = logging.getLogger(__name__)


# ****************************************************
#  Reads
# ****************************************************

def fetch_primary_messages(db, park_id: str) -> List[PrimaryMessageRecord]:
    query = db.collection(settings.MESSAGES_COLLECTION) \
        .where(filter=FieldFilter("parkId", "==", park_id)) \
        .order_by("createdAt", direction=Query.DESCENDING)
    return parse_documents(query.stream(), PrimaryMessageRecord.from_document, settings.MESSAGES_COLLECTION)


def fetch_legacy_chats(db, park_id: str) -> List[LegacyChatRecord]:
    query = db.collection(settings.CHATS_COLLECTION) \
        .where(filter=FieldFilter("parkId", "==", park_id))
    return parse_documents(query.stream(), LegacyChatRecord.from_document, settings.CHATS_COLLECTION)


async def load_message_records(db, principal: Principal) -> Tuple[List[PrimaryMessageRecord], List[LegacyChatRecord]]:
    """
    Fetch both message collections concurrently.
    A failed fetch is logged and contributes nothing; the other still counts.
    """
    loop = asyncio.get_event_loop()
    results = await asyncio.gather(
        loop.run_in_executor(None, fetch_primary_messages, db, principal.park_id),
        loop.run_in_executor(None, fetch_legacy_chats, db, principal.park_id),
        return_exceptions=True,
    )

    records = []
    for name, result in zip((settings.MESSAGES_COLLECTION, settings.CHATS_COLLECTION), results):
        if isinstance(result, Exception):
            logger.error(f"Error fetching {name} for park {principal.park_id}: {str(result)}")
            records.append([])
        else:
            logger.info(f"Fetched {len(result)} records from {name}")
            records.append(result)

    return records[0], records[1]


async def get_conversations(db, principal: Optional[Principal]) -> List[Conversation]:
    if principal is None:
        logger.info("No authenticated user found, returning empty conversations")
        return []

    async def load():
        primary, legacy = await load_message_records(db, principal)
        return build_conversations(primary, legacy)

    return await refresh_coordinator.run(principal.park_id, "conversations", load)


async def get_conversation_thread(db, principal: Optional[Principal], user_id: str) -> List[Message]:
    if principal is None:
        return []

    primary, legacy = await load_message_records(db, principal)
    return conversation_messages(primary, legacy, user_id)


async def get_messages(db, principal: Optional[Principal], message_status: Optional[str] = None) -> List[Message]:
    """Flat list of every message, newest first"""
    if principal is None:
        logger.info("No authenticated user found, returning empty messages")
        return []

    primary, legacy = await load_message_records(db, principal)
    messages = [normalize_primary(record) for record in primary]
    messages.extend(normalize_legacy(record) for record in legacy)

    if message_status:
        messages = [m for m in messages if m.status == message_status]

    messages.sort(key=lambda m: m.id)
    messages.sort(key=lambda m: m.timestamp.timestamp() if m.timestamp else float("-inf"), reverse=True)
    return messages


# ****************************************************
#  Writes
# ****************************************************

def find_owned_message(db, principal: Principal, message_id: str):
    """
    Look a message up in `messages`, then in `chats`.
    Returns (doc_ref, data, collection_name).
    """
    for collection_name in (settings.MESSAGES_COLLECTION, settings.CHATS_COLLECTION):
        doc_ref = db.collection(collection_name).document(message_id)
        doc = doc_ref.get()
        if doc.exists:
            data = doc.to_dict()
            if data.get("parkId") != principal.park_id:
                logger.warning(f"Park {principal.park_id} tried to access message {message_id}")
                raise HTTPException(
                    status_code=status.HTTP_403_FORBIDDEN,
                    detail="Message does not belong to current parking lot"
                )
            return doc_ref, data, collection_name

    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Message not found")


def add_message(db, principal: Principal, request: NewMessageRequest) -> dict:
    message_doc = {
        "fullName": request.full_name,
        "mobile": request.mobile or "",
        "email": request.email or "",
        "message": request.message,
        "category": request.category or "general",
        "priority": request.priority,
        "status": "unread",
        "userEmail": principal.email,
        "parkId": principal.park_id,
        "createdAt": SERVER_TIMESTAMP,
        "updatedAt": SERVER_TIMESTAMP,
    }

    _, doc_ref = db.collection(settings.MESSAGES_COLLECTION).add(message_doc)
    refresh_coordinator.invalidate(principal.park_id)
    logger.info(f"Message added with ID: {doc_ref.id}")
    return {"id": doc_ref.id, "status": "unread"}


def update_message_status(db, principal: Principal, message_id: str, message_status: str) -> dict:
    doc_ref, _, collection_name = find_owned_message(db, principal, message_id)
    doc_ref.update({
        "status": message_status,
        "updatedAt": SERVER_TIMESTAMP,
    })
    refresh_coordinator.invalidate(principal.park_id)
    logger.info(f"Message {message_id} in {collection_name} set to {message_status}")
    return {"id": message_id, "status": message_status}


def delete_message(db, principal: Principal, message_id: str) -> dict:
    doc_ref, _, collection_name = find_owned_message(db, principal, message_id)
    doc_ref.delete()
    refresh_coordinator.invalidate(principal.park_id)
    logger.info(f"Deleted message {message_id} from {collection_name}")
    return {"message": "Message deleted successfully", "id": message_id}


def _write_reply(db, principal: Principal, customer_name: str, mobile: str, email: str,
                 text: str, reply_to: dict, original_message_id: Optional[str] = None) -> dict:
    reply_doc = {
        "fullName": f"Admin Reply to {customer_name}",
        "mobile": mobile or "",
        "email": email or "",
        "message": text,
        "category": "reply",
        "priority": "normal",
        "status": "read",
        "userEmail": principal.email,
        "parkId": principal.park_id,
        "createdAt": SERVER_TIMESTAMP,
        "updatedAt": SERVER_TIMESTAMP,
        "isReply": True,
        "replyTo": reply_to,
    }
    if original_message_id:
        reply_doc["originalMessageId"] = original_message_id

    _, doc_ref = db.collection(settings.MESSAGES_COLLECTION).add(reply_doc)
    refresh_coordinator.invalidate(principal.park_id)
    logger.info(f"Reply added with ID: {doc_ref.id}")

    return {
        "id": doc_ref.id,
        "is_reply": True,
        "reply_to": reply_to,
    }


def _original_as_message(original_message_id: str, original: dict, collection_name: str) -> Message:
    # the reply must carry the same contact fields the original is keyed on
    if collection_name == settings.CHATS_COLLECTION:
        return normalize_legacy(LegacyChatRecord.from_document(original_message_id, original))
    return normalize_primary(PrimaryMessageRecord.from_document(original_message_id, original))


def reply_to_message(db, principal: Principal, original_message_id: str, text: str) -> dict:
    doc_ref, original, collection_name = find_owned_message(db, principal, original_message_id)
    message = _original_as_message(original_message_id, original, collection_name)

    customer_name = message.user_name or "Customer"
    if message.is_admin_reply and message.reply_to and message.reply_to.user_name:
        customer_name = message.reply_to.user_name

    reply = _write_reply(
        db,
        principal,
        customer_name=customer_name,
        mobile=message.user_phone,
        email=message.user_email,
        text=text,
        reply_to={
            "messageId": original_message_id,
            "userName": customer_name,
            "originalMessage": message.text,
        },
        original_message_id=original_message_id,
    )

    # legacy chat threads keep their own unread counter, only primary messages are marked read
    if collection_name == settings.MESSAGES_COLLECTION:
        try:
            doc_ref.update({"status": "read", "updatedAt": SERVER_TIMESTAMP})
        except Exception as e:
            logger.warning(f"Could not mark message {original_message_id} as read: {str(e)}")

    return reply


async def send_to_conversation(db, principal: Principal, user_id: str, text: str) -> dict:
    primary, legacy = await load_message_records(db, principal)
    conversation = find_conversation(build_conversations(primary, legacy), user_id)

    if conversation is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User conversation not found")

    loop = asyncio.get_event_loop()
    return await loop.run_in_executor(
        None,
        lambda: _write_reply(
            db,
            principal,
            customer_name=conversation.user_name,
            mobile=conversation.user_phone,
            email=conversation.user_email,
            text=text,
            reply_to={
                "messageId": user_id,
                "userName": conversation.user_name,
                "originalMessage": conversation.last_message,
            },
        ),
    )
