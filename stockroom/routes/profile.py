"""
Profile Routes
The signed-in user's own name, department and avatar
"""

from flask import Blueprint, current_app, jsonify, request
from flask_login import login_required

from stockroom.services.data_store import get_data_store
from stockroom.services.user_service import UserService
from stockroom.utils.helpers import request_data

bp = Blueprint('profile', __name__)


def _service():
    return UserService(get_data_store(), current_app.config['MIN_PASSWORD_LENGTH'])


@bp.route('/', methods=['GET', 'POST'])
@login_required
def index():
    store = get_data_store()
    profile = store.current_user()
    if request.method == 'POST':
        result = _service().update_profile(profile, request_data())
        return jsonify(result.to_dict())
    return jsonify({'success': True, 'user': profile})


@bp.route('/avatar', methods=['POST'])
@login_required
def avatar():
    profile = get_data_store().current_user()
    result = _service().upload_avatar(profile, request.files.get('avatar'))
    return jsonify(result.to_dict())
