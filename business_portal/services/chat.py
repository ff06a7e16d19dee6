import logging
from datetime import datetime

from business_portal import db
from business_portal.models import User, ChatRoom, ChatParticipant, ChatMessage
from business_portal.errors import ValidationFailed, NotFound, Forbidden

logger = logging.getLogger(__name__)

GROUP_NAME = 'Semua User'
MAX_MESSAGE_LENGTH = 5000


def _participant(room_id, user):
    participant = ChatParticipant.query.filter_by(room_id=room_id, user_id=user.id).first()
    if participant is None:
        if db.session.get(ChatRoom, room_id) is None:
            raise NotFound('Chat room not found')
        raise Forbidden('Not a participant')
    return participant


def _unread(room, participant, user):
    query = room.messages.filter(ChatMessage.sender_id != user.id)
    if participant.last_seen_at:
        query = query.filter(ChatMessage.created_at > participant.last_seen_at)
    return query.count()


def message_dict(message, user):
    return {
        'id': message.id,
        'content': message.content,
        'senderId': message.sender_id,
        'senderName': message.sender.display_name if message.sender else 'Unknown',
        'createdAt': message.created_at.isoformat(),
        'isOwn': message.sender_id == user.id,
    }


def list_rooms(user):
    participations = ChatParticipant.query.filter_by(user_id=user.id).all()
    rooms = []
    for participant in participations:
        room = participant.room
        last = room.messages.order_by(ChatMessage.created_at.desc(), ChatMessage.id.desc()).first()
        others = [p.user for p in room.participants if p.user_id != user.id]
        if room.is_group:
            name = room.name or GROUP_NAME
        else:
            name = others[0].display_name if others else 'Unknown'
        rooms.append({
            'id': room.id,
            'name': name,
            'isGroup': bool(room.is_group),
            'lastMessage': message_dict(last, user) if last else None,
            'unreadCount': _unread(room, participant, user),
            'updatedAt': room.updated_at.isoformat(),
        })
    rooms.sort(key=lambda r: r['updatedAt'], reverse=True)
    return rooms


def get_or_create_direct_chat(user, other_user_id):
    if other_user_id == user.id:
        raise ValidationFailed('Cannot start a chat with yourself')
    other = db.session.get(User, other_user_id)
    if other is None:
        raise NotFound('User not found')

    mine = {p.room_id for p in ChatParticipant.query.filter_by(user_id=user.id).all()}
    for participant in ChatParticipant.query.filter_by(user_id=other.id).all():
        room = participant.room
        if room.id in mine and not room.is_group and len(room.participants) == 2:
            return room

    room = ChatRoom(is_group=False)
    room.participants = [ChatParticipant(user_id=user.id), ChatParticipant(user_id=other.id)]
    db.session.add(room)
    db.session.commit()
    return room


def get_or_create_group_chat(user):
    room = ChatRoom.query.filter_by(is_group=True, name=GROUP_NAME).first()
    if room is None:
        room = ChatRoom(is_group=True, name=GROUP_NAME)
        room.participants = [ChatParticipant(user_id=u.id) for u in User.query.all()]
        db.session.add(room)
        db.session.commit()
        return room

    if not any(p.user_id == user.id for p in room.participants):
        room.participants.append(ChatParticipant(user_id=user.id))
        db.session.commit()
    return room


def get_messages(room_id, user, cursor=None, limit=50):
    """Up to ``limit`` messages older than message id ``cursor``, oldest first."""
    participant = _participant(room_id, user)
    query = ChatMessage.query.filter_by(room_id=room_id)
    if cursor:
        query = query.filter(ChatMessage.id < cursor)
    messages = query.order_by(ChatMessage.id.desc()).limit(limit).all()

    participant.last_seen_at = datetime.utcnow()
    db.session.commit()
    return [message_dict(m, user) for m in reversed(messages)]


def get_new_messages(room_id, user, after_id):
    participant = _participant(room_id, user)
    messages = (ChatMessage.query
                .filter(ChatMessage.room_id == room_id, ChatMessage.id > after_id)
                .order_by(ChatMessage.id)
                .all())
    if messages:
        participant.last_seen_at = datetime.utcnow()
        db.session.commit()
    return [message_dict(m, user) for m in messages]


def send_message(room_id, user, content):
    content = (content or '').strip()
    if not content:
        raise ValidationFailed('Message cannot be empty')
    if len(content) > MAX_MESSAGE_LENGTH:
        raise ValidationFailed('Message is too long')
    participant = _participant(room_id, user)

    now = datetime.utcnow()
    message = ChatMessage(room_id=room_id, sender_id=user.id, content=content, created_at=now)
    db.session.add(message)
    participant.room.updated_at = now
    participant.last_seen_at = now
    db.session.commit()
    return message


def unread_total(user):
    return sum(_unread(p.room, p, user) for p in ChatParticipant.query.filter_by(user_id=user.id).all())


def chat_users(user):
    return [u for u in User.query.order_by(User.id).all() if u.id != user.id]
