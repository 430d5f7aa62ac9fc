"""The caller's own profile."""

from flask import request, jsonify

from taskloop import db
from taskloop.routes.auth import auth_bp
from taskloop.services.reputation import get_user
from taskloop.utils import token_required
from taskloop.utils.validators import validate_profile_update


@auth_bp.route('/me', methods=['GET'])
@token_required
def get_profile(session):
    """Get current user profile, including both role ratings."""
    user = get_user(session.user_id)
    return jsonify({'user': user.to_dict()}), 200


@auth_bp.route('/me', methods=['PUT'])
@token_required
def update_profile(session):
    """Update full_name and avatar_url. The username cannot be changed."""
    try:
        user = get_user(session.user_id)
        changes = validate_profile_update(request.get_json(silent=True))

        for field, value in changes.items():
            setattr(user, field, value)

        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    return jsonify({
        'message': 'Profile updated successfully',
        'user': user.to_dict()
    }), 200
