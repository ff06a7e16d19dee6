from flask import request, jsonify
from flask_login import current_user

from . import bp
from business_portal.errors import ValidationFailed
from business_portal.services import chat as chat_service
from business_portal.utils.helpers import login_required_json


@bp.route('/rooms')
@login_required_json
def rooms():
    return jsonify(chat_service.list_rooms(current_user))


@bp.route('/rooms/direct', methods=['POST'])
@login_required_json
def direct_room():
    data = request.get_json(silent=True) or request.form
    try:
        other_user_id = int(data.get('userId') or data.get('user_id'))
    except (TypeError, ValueError):
        raise ValidationFailed('userId: required')
    room = chat_service.get_or_create_direct_chat(current_user, other_user_id)
    return jsonify({'roomId': room.id})


@bp.route('/rooms/group', methods=['POST'])
@login_required_json
def group_room():
    room = chat_service.get_or_create_group_chat(current_user)
    return jsonify({'roomId': room.id})


@bp.route('/rooms/<int:room_id>/messages')
@login_required_json
def messages(room_id):
    return jsonify(chat_service.get_messages(room_id, current_user,
                                             cursor=request.args.get('cursor', type=int),
                                             limit=min(request.args.get('limit', 50, type=int), 200)))


@bp.route('/rooms/<int:room_id>/messages/new')
@login_required_json
def new_messages(room_id):
    after_id = request.args.get('after', 0, type=int)
    return jsonify(chat_service.get_new_messages(room_id, current_user, after_id))


@bp.route('/rooms/<int:room_id>/messages', methods=['POST'])
@login_required_json
def send_message(room_id):
    data = request.get_json(silent=True) or request.form
    message = chat_service.send_message(room_id, current_user, data.get('content'))
    return jsonify(chat_service.message_dict(message, current_user)), 201


@bp.route('/unread')
@login_required_json
def unread():
    return jsonify({'count': chat_service.unread_total(current_user)})


@bp.route('/users')
@login_required_json
def users():
    return jsonify([{'id': u.id, 'name': u.display_name, 'role': u.role}
                    for u in chat_service.chat_users(current_user)])
