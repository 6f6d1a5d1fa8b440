"""
Stock Routes
Low-stock and expiry alerts, manual adjustments and movement history
"""

from flask import Blueprint, request, jsonify, current_app
from flask_login import login_required, current_user
from sqlalchemy.exc import SQLAlchemyError
from pos_dashboard.errors import ValidationError, UpstreamDataError
from pos_dashboard.models import db, Product, StockMovement
from pos_dashboard.services.checkout_calculator import to_int
from pos_dashboard.utils.helpers import get_request_data
from pos_dashboard.utils.permissions import permission_required, Permissions
from pos_dashboard.utils.stock_alerts import get_low_stock_alerts, get_expiring_products, get_stock_summary

bp = Blueprint('stock', __name__)

ADJUSTMENT_TYPES = ('add', 'remove', 'set')


@bp.route('/alerts')
@login_required
@permission_required(Permissions.PRODUCTS_VIEW)
def alerts():
    """Low stock, out of stock and expiring products"""
    days = request.args.get('days', current_app.config['EXPIRY_WARNING_DAYS'], type=int)
    low_stock = get_low_stock_alerts()
    return jsonify({
        'low_stock': low_stock,
        'expiring': get_expiring_products(days),
        'summary': get_stock_summary(),
        'alert_count': len(low_stock),
    })


@bp.route('/adjust/<int:product_id>', methods=['POST'])
@login_required
@permission_required(Permissions.STOCK_MANAGE)
def adjust_stock(product_id):
    """Add, remove or set stock; every change is recorded as a movement"""
    product = db.get_or_404(Product, product_id)
    data = get_request_data()

    adjustment_type = data.get('adjustment_type', 'add')
    if adjustment_type not in ADJUSTMENT_TYPES:
        raise ValidationError(
            f"Adjustment type must be one of: {', '.join(ADJUSTMENT_TYPES)}",
            field='adjustment_type'
        )
    quantity = to_int(data.get('quantity', 0), 'quantity')
    if quantity < 0:
        raise ValidationError('Quantity cannot be negative', field='quantity')
    reason = data.get('reason') or 'Manual adjustment'

    old_quantity = product.stock or 0
    if adjustment_type == 'add':
        adjustment = quantity
    elif adjustment_type == 'remove':
        adjustment = -quantity
    else:
        adjustment = quantity - old_quantity

    new_quantity = old_quantity + adjustment
    if new_quantity < 0:
        raise ValidationError('Stock cannot be negative', field='quantity')

    try:
        product.stock = new_quantity
        db.session.add(StockMovement(
            product_id=product.id,
            user_id=current_user.id,
            movement_type='adjustment',
            quantity=adjustment,
            reference='STOCK_ADJUSTMENT',
            notes=f'{reason} (Old: {old_quantity}, New: {new_quantity})'
        ))
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Error adjusting stock for product {product_id}: {e}")
        raise UpstreamDataError('Could not adjust stock')

    current_app.logger.info(f"Stock for {product.code} adjusted {old_quantity} -> {new_quantity} by {current_user.username}")
    return jsonify({
        'success': True,
        'new_quantity': new_quantity,
        'message': 'Stock adjusted successfully'
    })


@bp.route('/movements/<int:product_id>')
@login_required
@permission_required(Permissions.STOCK_MANAGE)
def stock_movements(product_id):
    product = db.get_or_404(Product, product_id)
    movements = product.stock_movements\
        .order_by(StockMovement.timestamp.desc(), StockMovement.id.desc()).limit(100).all()

    return jsonify({
        'product': product.to_dict(),
        'movements': [{
            'id': m.id,
            'movement_type': m.movement_type,
            'quantity': m.quantity,
            'reference': m.reference,
            'notes': m.notes,
            'user': m.user.full_name if m.user else None,
            'timestamp': m.timestamp.isoformat() if m.timestamp else None,
        } for m in movements],
    })
