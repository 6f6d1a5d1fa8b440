"""
Discount Management Routes
Discount codes maintained by admins and managers
"""

from flask import Blueprint, jsonify, current_app
from flask_login import login_required, current_user
from sqlalchemy.exc import SQLAlchemyError
from pos_dashboard.errors import ValidationError, UpstreamDataError
from pos_dashboard.models import db, Discount
from pos_dashboard.routes.auth import log_activity
from pos_dashboard.services.checkout_calculator import to_decimal, HUNDRED
from pos_dashboard.utils.helpers import get_request_data, parse_bool
from pos_dashboard.utils.permissions import role_required

bp = Blueprint('discounts', __name__)


def _apply_discount_fields(discount, data, creating=False):
    if creating or 'code' in data:
        code = (data.get('code') or '').strip().upper()
        if not code:
            raise ValidationError('Discount code is required', field='code')
        clash = Discount.query.filter(Discount.code == code, Discount.id != discount.id).first()
        if clash:
            raise ValidationError(f'Discount code {code} already exists', field='code')
        discount.code = code

    if creating or 'discount_type' in data:
        discount_type = data.get('discount_type') or 'percentage'
        if discount_type not in Discount.TYPES:
            raise ValidationError(
                f"Discount type must be one of: {', '.join(Discount.TYPES)}",
                field='discount_type'
            )
        discount.discount_type = discount_type

    if creating or 'discount_value' in data:
        value = to_decimal(data.get('discount_value'), 'discount_value')
        if value <= 0:
            raise ValidationError('Discount value must be greater than zero', field='discount_value')
        discount.discount_value = value

    if discount.discount_type == 'percentage' and to_decimal(discount.discount_value) > HUNDRED:
        raise ValidationError('Percentage discount cannot exceed 100', field='discount_value')

    for field in ('min_purchase_amount', 'max_discount_amount'):
        if field in data:
            amount = to_decimal(data.get(field) or 0, field)
            if amount < 0:
                raise ValidationError(f'{field} cannot be negative', field=field)
            setattr(discount, field, amount)

    if 'description' in data:
        discount.description = data.get('description') or None
    if 'is_active' in data:
        discount.is_active = parse_bool(data.get('is_active'), default=True)


def _save(discount, action):
    try:
        db.session.add(discount)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Error saving discount: {e}")
        raise UpstreamDataError('Could not save the discount')
    log_activity(current_user.id, action, 'discount', discount.id, discount.code)


@bp.route('/')
@login_required
@role_required('admin', 'manager')
def index():
    discounts = Discount.query.order_by(Discount.created_at.desc(), Discount.id.desc()).all()
    return jsonify({'discounts': [d.to_dict() for d in discounts]})


@bp.route('/', methods=['POST'])
@login_required
@role_required('admin', 'manager')
def add_discount():
    discount = Discount(created_by=current_user.id)
    _apply_discount_fields(discount, get_request_data(), creating=True)
    _save(discount, 'create_discount')
    return jsonify({'success': True, 'discount': discount.to_dict()}), 201


@bp.route('/<int:discount_id>', methods=['PUT', 'PATCH'])
@login_required
@role_required('admin', 'manager')
def edit_discount(discount_id):
    discount = db.get_or_404(Discount, discount_id)
    _apply_discount_fields(discount, get_request_data())
    _save(discount, 'update_discount')
    return jsonify({'success': True, 'discount': discount.to_dict()})


@bp.route('/<int:discount_id>', methods=['DELETE'])
@login_required
@role_required('admin', 'manager')
def delete_discount(discount_id):
    discount = db.get_or_404(Discount, discount_id)
    code = discount.code
    try:
        db.session.delete(discount)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Error deleting discount: {e}")
        raise UpstreamDataError('Could not delete the discount')
    log_activity(current_user.id, 'delete_discount', 'discount', discount_id, code)
    return jsonify({'success': True, 'message': 'Discount deleted successfully'})
