"""Password reset routes: forgot-password and reset-password."""

from datetime import datetime

from flask import request, jsonify
import logging

from taskloop import db, limiter
from taskloop.models import User, PasswordResetToken
from taskloop.routes.auth import auth_bp
from taskloop.services.email import email_service
from taskloop.services.errors import ValidationFailed
from taskloop.utils.validators import validate_password

logger = logging.getLogger(__name__)


@auth_bp.route('/forgot-password', methods=['POST'])
@limiter.limit("3 per minute")
def forgot_password():
    """Email a reset link. The answer is the same whether or not the account exists."""
    data = request.get_json(silent=True)
    if not data or not isinstance(data.get('email'), str) or not data['email'].strip():
        raise ValidationFailed('Email is required')

    email = data['email'].strip().lower()
    user = User.query.filter_by(email=email).first()

    if user:
        try:
            reset_token = PasswordResetToken.issue(user.id)
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        if not email_service.send_password_reset_email(user.email, user.username, reset_token.token):
            logger.warning(f'Password reset email for user {user.id} was not delivered')
        else:
            logger.info(f'Password reset requested for user {user.id}')

    return jsonify({
        'message': 'If an account with that email exists, we have sent a password reset link.'
    }), 200


@auth_bp.route('/reset-password', methods=['POST'])
@limiter.limit("5 per minute")
def reset_password():
    """Set a new password using the token from the reset email."""
    data = request.get_json(silent=True)
    if not data or not all(k in data for k in ['token', 'password']):
        raise ValidationFailed('Token and password are required')

    new_password = validate_password(data['password'])

    try:
        reset_token = PasswordResetToken.find_valid(data['token'])
        if not reset_token:
            raise ValidationFailed('Invalid or expired reset link')

        user = reset_token.user
        user.set_password(new_password)
        user.updated_at = datetime.utcnow()
        reset_token.used = True
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info(f'Password reset for user {user.id}')
    return jsonify({'message': 'Password has been reset successfully'}), 200
