"""Public user routes: profiles, ratings, statistics and the leaderboard."""

from flask import Blueprint, request, jsonify

from taskloop.services import reputation
from taskloop.utils import token_optional

users_bp = Blueprint('users', __name__)


@users_bp.route('/search', methods=['GET'])
@token_optional
def search_users(session):
    """Find users by part of their username.

    Query params:
        q: search term (required)
    """
    exclude = session.user_id if session.is_authenticated else None
    users = reputation.search_users(request.args.get('q', ''), exclude_user_id=exclude)
    return jsonify({
        'users': [user.to_public_dict() for user in users],
        'total': len(users)
    }), 200


@users_bp.route('/leaderboard', methods=['GET'])
def get_leaderboard():
    """Top users by reward earned (doer) or paid out (creator).

    Query params:
        role: 'creator' or 'doer' (default 'doer')
    """
    role = request.args.get('role', 'doer')
    entries = reputation.leaderboard(role)
    return jsonify({
        'role': role,
        'leaderboard': entries
    }), 200


@users_bp.route('/<int:user_id>', methods=['GET'])
def get_public_profile(user_id):
    user = reputation.get_user(user_id)
    return jsonify({'user': user.to_public_dict()}), 200


@users_bp.route('/<int:user_id>/ratings', methods=['GET'])
def get_user_ratings(user_id):
    return jsonify(reputation.get_user_ratings(user_id)), 200


@users_bp.route('/<int:user_id>/statistics', methods=['GET'])
def get_user_statistics(user_id):
    """Task counts, completion rate, ratings and level for a user."""
    return jsonify(reputation.user_statistics(user_id)), 200
