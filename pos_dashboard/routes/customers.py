"""
Customer Routes
Phone lookup and registration at the till, customer administration and
the loyalty ledger
"""

from flask import Blueprint, request, jsonify, current_app
from flask_login import login_required, current_user
from sqlalchemy.exc import SQLAlchemyError
from pos_dashboard.errors import ValidationError, UpstreamDataError
from pos_dashboard.models import db, Customer, LoyaltyTier, LoyaltyTransaction
from pos_dashboard.routes.auth import log_activity
from pos_dashboard.services.lookups import search_customers_by_phone
from pos_dashboard.utils.helpers import get_request_data
from pos_dashboard.utils.permissions import permission_required, Permissions

bp = Blueprint('customers', __name__)

MAX_LOOKUP_RESULTS = 5


@bp.route('/')
@login_required
@permission_required(Permissions.CUSTOMERS_MANAGE)
def index():
    """All customers with their tiers"""
    page = request.args.get('page', 1, type=int)
    customers = Customer.query.order_by(Customer.name)\
        .paginate(page=page, per_page=current_app.config['ITEMS_PER_PAGE'], error_out=False)

    return jsonify({
        'customers': [c.to_dict() for c in customers.items],
        'page': customers.page,
        'pages': customers.pages,
        'total': customers.total,
    })


@bp.route('/search')
@login_required
@permission_required(Permissions.CUSTOMERS_LOOKUP)
def search_customers():
    """Phone lookup for the billing screen"""
    customers = search_customers_by_phone(request.args.get('phone', ''), limit=MAX_LOOKUP_RESULTS)
    return jsonify({'customers': [c.to_dict() for c in customers]})


@bp.route('/', methods=['POST'])
@login_required
@permission_required(Permissions.CUSTOMERS_LOOKUP)
def add_customer():
    """Register a customer; new customers start with zero points"""
    data = get_request_data()
    name = (data.get('name') or '').strip()
    phone = (data.get('phone') or '').strip()
    email = (data.get('email') or '').strip() or None

    if not name:
        raise ValidationError('Customer name is required', field='name')
    if not phone:
        raise ValidationError('Phone number is required', field='phone')
    if Customer.query.filter_by(phone=phone).first():
        raise ValidationError('A customer with this phone number already exists', field='phone')

    customer = Customer(name=name, phone=phone, email=email, total_points=0)
    try:
        db.session.add(customer)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Error adding customer: {e}")
        raise UpstreamDataError('Could not save the customer')

    log_activity(current_user.id, 'create_customer', 'customer', customer.id, f'{customer.name} ({customer.phone})')
    return jsonify({'success': True, 'customer': customer.to_dict()}), 201


@bp.route('/<int:customer_id>')
@login_required
@permission_required(Permissions.CUSTOMERS_LOOKUP)
def view_customer(customer_id):
    customer = db.get_or_404(Customer, customer_id)
    data = customer.to_dict()
    data['total_purchases'] = float(customer.total_purchases)
    return jsonify({'success': True, 'customer': data})


@bp.route('/<int:customer_id>', methods=['DELETE'])
@login_required
@permission_required(Permissions.CUSTOMERS_MANAGE)
def delete_customer(customer_id):
    """Delete a customer and its ledger; past sales keep their totals"""
    customer = db.get_or_404(Customer, customer_id)
    name = customer.name
    try:
        for sale in customer.sales:
            sale.customer_id = None
        db.session.delete(customer)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Error deleting customer: {e}")
        raise UpstreamDataError('Could not delete the customer')

    log_activity(current_user.id, 'delete_customer', 'customer', customer_id, name)
    return jsonify({'success': True, 'message': 'Customer deleted successfully'})


@bp.route('/<int:customer_id>/ledger')
@login_required
@permission_required(Permissions.CUSTOMERS_MANAGE)
def ledger(customer_id):
    """Points earned and redeemed, newest first"""
    customer = db.get_or_404(Customer, customer_id)
    transactions = customer.loyalty_transactions\
        .order_by(LoyaltyTransaction.created_at.desc(), LoyaltyTransaction.id.desc()).all()

    return jsonify({
        'customer': customer.to_dict(),
        'transactions': [t.to_dict() for t in transactions],
    })


@bp.route('/tiers')
@login_required
@permission_required(Permissions.CUSTOMERS_LOOKUP)
def tiers():
    tiers = LoyaltyTier.query.order_by(LoyaltyTier.min_points).all()
    return jsonify({'tiers': [t.to_dict() for t in tiers]})
