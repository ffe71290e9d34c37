from functools import wraps

from flask import jsonify
from flask_jwt_extended import jwt_required, get_jwt_identity

from adaptlearn import db
from adaptlearn.models import User


def current_user_id():
    return int(get_jwt_identity())


def admin_required(f):
    @wraps(f)
    @jwt_required()
    def decorated_function(*args, **kwargs):
        user = db.session.get(User, current_user_id())
        if not user or not user.is_admin():
            return jsonify({'message': 'Admin access required'}), 403
        return f(*args, **kwargs)
    return decorated_function
