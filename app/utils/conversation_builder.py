from app.models.message import Conversation, LegacyChatRecord, Message, PrimaryMessageRecord
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional
import logging

logger = logging.getLogger(__name__)

# conversations without any timestamp sort after everything else
_OLDEST = datetime.min.replace(tzinfo=timezone.utc)


# ****************************************************
#  Normalization
# ****************************************************

def primary_user_key(record: PrimaryMessageRecord) -> str:
    return record.email or record.mobile or f"user_{record.id}"


def legacy_user_key(record: LegacyChatRecord) -> str:
    return record.user_email or record.phone or f"chat_{record.id}"


def normalize_primary(record: PrimaryMessageRecord) -> Message:
    return Message(
        id=record.id,
        text=record.message,
        is_admin_reply=record.is_reply,
        timestamp=record.created_at,
        status=record.status,
        category=record.category,
        priority=record.priority,
        reply_to=record.reply_to,
        source="messages",
        user_key=primary_user_key(record),
        user_name=record.full_name,
        user_email=record.email,
        user_phone=record.mobile,
    )


def normalize_legacy(record: LegacyChatRecord) -> Message:
    # a chat thread counts as one record; any unread count marks it unread
    return Message(
        id=record.id,
        text=record.last_message,
        is_admin_reply=False,
        timestamp=record.last_message_time or record.created_at,
        status="unread" if record.unread_count > 0 else "read",
        category="chat",
        priority="normal",
        source="chats",
        user_key=legacy_user_key(record),
        user_name=record.user_name,
        user_email=record.user_email,
        user_phone=record.phone,
    )


# ****************************************************
#  Folding
# ****************************************************

def _seed_conversation(message: Message) -> Conversation:
    # admin replies carry "Admin Reply to <name>" as sender, use the quoted name
    user_name = message.user_name
    if message.is_admin_reply and message.reply_to and message.reply_to.user_name:
        user_name = message.reply_to.user_name

    return Conversation(
        user_id=message.user_key,
        user_name=user_name,
        user_email=message.user_email,
        user_phone=message.user_phone,
        category=message.category,
        priority=message.priority,
    )


def _fold(conversation: Conversation, message: Message):
    conversation.message_count += 1
    if message.status == "unread":
        conversation.unread_count += 1
    conversation.messages.append(message)

    if message.timestamp is None:
        if conversation.last_message_time is None and not conversation.last_message:
            conversation.last_message = message.text
        return

    if conversation.last_message_time is None or message.timestamp > conversation.last_message_time:
        conversation.last_message = message.text
        conversation.last_message_time = message.timestamp


def _message_sort_key(message: Message):
    return (message.timestamp or _OLDEST, message.id)


def group_messages(messages: Iterable[Message]) -> List[Conversation]:
    """
    Group normalized messages into conversations keyed by counterparty.

    Conversations come back newest activity first, ties broken by user_id;
    the messages of each conversation are oldest first.
    """
    conversations: Dict[str, Conversation] = {}

    for message in messages:
        conversation = conversations.get(message.user_key)
        if conversation is None:
            conversation = _seed_conversation(message)
            conversations[message.user_key] = conversation
        _fold(conversation, message)

    result = list(conversations.values())

    # two stable passes: secondary key first, then primary key descending
    result.sort(key=lambda c: c.user_id)
    result.sort(key=lambda c: c.last_message_time or _OLDEST, reverse=True)

    for conversation in result:
        conversation.messages.sort(key=_message_sort_key)

    return result


def build_conversations(
    primary: Iterable[PrimaryMessageRecord],
    legacy: Iterable[LegacyChatRecord],
) -> List[Conversation]:
    messages = [normalize_primary(record) for record in primary]
    messages.extend(normalize_legacy(record) for record in legacy)

    conversations = group_messages(messages)
    logger.info(f"Built {len(conversations)} conversations from {len(messages)} records")
    return conversations


def conversation_messages(
    primary: Iterable[PrimaryMessageRecord],
    legacy: Iterable[LegacyChatRecord],
    user_id: str,
) -> List[Message]:
    """Oldest-first thread for one counterparty key."""
    messages = [normalize_primary(record) for record in primary]
    messages.extend(normalize_legacy(record) for record in legacy)

    thread = [m for m in messages if m.user_key == user_id]
    thread.sort(key=_message_sort_key)
    return thread


def find_conversation(conversations: List[Conversation], user_id: str) -> Optional[Conversation]:
    return next((c for c in conversations if c.user_id == user_id), None)
