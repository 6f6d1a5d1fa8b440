"""
Permission Decorators
"""

from functools import wraps
from flask import jsonify
from flask_login import current_user


class Permissions:
    """Permission name constants to avoid typos"""

    POS_VIEW = 'pos.view'
    POS_CREATE_SALE = 'pos.create_sale'

    PRODUCTS_VIEW = 'products.view'
    PRODUCTS_MANAGE = 'products.manage'

    CUSTOMERS_LOOKUP = 'customers.lookup'
    CUSTOMERS_MANAGE = 'customers.manage'

    DISCOUNTS_MANAGE = 'discounts.manage'
    STOCK_MANAGE = 'stock.manage'
    REPORTS_VIEW = 'reports.view'


def permission_required(permission_name):
    """
    Decorator to require a specific permission for a route

    Usage:
        @permission_required(Permissions.POS_CREATE_SALE)
        def checkout():
            ...
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not current_user.is_authenticated:
                return jsonify({'success': False, 'error': 'Authentication required'}), 401

            if not current_user.has_permission(permission_name):
                return jsonify({'success': False, 'error': 'Insufficient permissions'}), 403

            return f(*args, **kwargs)
        return decorated_function
    return decorator


def role_required(*role_names):
    """
    Decorator to require one of the given roles

    Usage:
        @role_required('admin', 'manager')
        def manage_discounts():
            ...
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not current_user.is_authenticated:
                return jsonify({'success': False, 'error': 'Authentication required'}), 401

            if not current_user.has_role(*role_names):
                return jsonify({
                    'success': False,
                    'error': f"Access denied. {' or '.join(role_names)} only."
                }), 403

            return f(*args, **kwargs)
        return decorated_function
    return decorator
