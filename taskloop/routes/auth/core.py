"""Core authentication routes: registration and login."""

from flask import request, jsonify
import logging

from sqlalchemy.exc import IntegrityError

from taskloop import db, limiter
from taskloop.models import User
from taskloop.routes.auth import auth_bp
from taskloop.services.errors import ValidationFailed, Conflict, AuthenticationRequired
from taskloop.utils import issue_token
from taskloop.utils.validators import validate_registration

logger = logging.getLogger(__name__)


@auth_bp.route('/register', methods=['POST'])
@limiter.limit("5 per minute")
def register():
    """Register a new user account and log it in."""
    try:
        fields = validate_registration(request.get_json(silent=True))

        if User.query.filter_by(username=fields['username']).first():
            raise Conflict('Username already exists')

        if User.query.filter_by(email=fields['email']).first():
            raise Conflict('Email already exists')

        user = User(
            username=fields['username'],
            email=fields['email'],
            full_name=fields['full_name']
        )
        user.set_password(fields['password'])

        db.session.add(user)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise Conflict('Username or email already exists')
    except Exception:
        db.session.rollback()
        raise

    logger.info(f'User {user.id} registered ({user.username})')
    return jsonify({
        'message': 'User registered successfully',
        'token': issue_token(user),
        'user': user.to_dict()
    }), 201


@auth_bp.route('/login', methods=['POST'])
@limiter.limit("10 per minute")
def login():
    """Authenticate user and return JWT token."""
    data = request.get_json(silent=True)

    if not data or not all(k in data for k in ['email', 'password']):
        raise ValidationFailed('Missing email or password')

    email = str(data['email']).strip().lower()
    user = User.query.filter_by(email=email).first()

    if not user or not user.check_password(str(data['password'])):
        raise AuthenticationRequired('Invalid email or password')

    return jsonify({
        'message': 'Login successful',
        'token': issue_token(user),
        'user': user.to_dict()
    }), 200
