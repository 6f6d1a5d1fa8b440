"""
Authentication Routes
Handles user login, logout, and the current role context
"""

from flask import Blueprint, request, jsonify, current_app
from flask_login import login_user, logout_user, current_user, login_required
from datetime import datetime
from sqlalchemy.exc import SQLAlchemyError
from pos_dashboard.models import db, User, ActivityLog, ROLE_PERMISSIONS
from pos_dashboard.utils.helpers import get_request_data, parse_bool

bp = Blueprint('auth', __name__)


@bp.route('/login', methods=['POST'])
def login():
    """User login (form or JSON body)"""
    data = get_request_data()
    username = (data.get('username') or '').strip()
    password = data.get('password') or ''
    remember = parse_bool(data.get('remember'))

    user = User.query.filter_by(username=username).first()

    if user is None or not user.check_password(password):
        log_activity(None, 'failed_login', 'user', None, f'Failed login attempt for username: {username}')
        return jsonify({'success': False, 'error': 'Invalid username or password'}), 401

    if not user.is_active:
        return jsonify({
            'success': False,
            'error': 'Your account has been deactivated. Please contact administrator.'
        }), 403

    # Login successful
    login_user(user, remember=remember)
    user.last_login = datetime.utcnow()
    db.session.commit()

    log_activity(user.id, 'login', 'user', user.id, 'User logged in')

    return jsonify({'success': True, 'user': user.to_dict()})


@bp.route('/logout', methods=['GET', 'POST'])
@login_required
def logout():
    """User logout"""
    log_activity(current_user.id, 'logout', 'user', current_user.id, 'User logged out')
    logout_user()
    return jsonify({'success': True, 'message': 'You have been logged out successfully.'})


@bp.route('/me')
@login_required
def me():
    """Role context for the dashboard shell"""
    return jsonify({
        'user': current_user.to_dict(),
        'permissions': ROLE_PERMISSIONS.get(current_user.role, []),
    })


def log_activity(user_id, action, entity_type, entity_id, details):
    """Helper function to log user activities"""
    try:
        log = ActivityLog(
            user_id=user_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            details=details,
            ip_address=request.remote_addr if request else None
        )
        db.session.add(log)
        db.session.commit()
    except SQLAlchemyError as e:
        # Don't fail the request if logging fails
        db.session.rollback()
        current_app.logger.error(f"Error logging activity: {e}")
