"""
Point of Sale Routes
Billing screen: cart, customer, redemption, payment and checkout
"""

from flask import Blueprint, request, jsonify, session, current_app
from flask_login import login_required, current_user
from pos_dashboard.errors import CheckoutError, ValidationError
from pos_dashboard.models import db, Sale
from pos_dashboard.routes.auth import log_activity
from pos_dashboard.services.checkout_calculator import to_int
from pos_dashboard.services.checkout_service import complete_sale, build_invoice
from pos_dashboard.services.checkout_session import CheckoutSession
from pos_dashboard.services.lookups import find_product, get_product, load_loyalty_customer
from pos_dashboard.utils.barcode import ScanDebouncer, normalize_code
from pos_dashboard.utils.helpers import get_request_data
from pos_dashboard.utils.permissions import permission_required, Permissions

bp = Blueprint('pos', __name__)


def _state_response(checkout, status=200, **extra):
    """Serialise the checkout; a breakdown that cannot be computed is reported, not raised"""
    customer, loyalty_customer = load_loyalty_customer(checkout.customer_id)
    try:
        payload = checkout.to_dict(loyalty_customer, customer)
    except CheckoutError as e:
        payload = {
            'items': [item.to_dict() for item in checkout.cart],
            'customer': customer.to_dict() if customer else None,
            'points_to_redeem': checkout.points_to_redeem,
            'payment_method': checkout.payment_method,
            'max_redeemable_points': checkout.max_redeemable_points(loyalty_customer),
            'breakdown': None,
            'breakdown_error': e.message,
        }
    payload['success'] = True
    payload.update(extra)
    return jsonify(payload), status


def _commit(checkout, **extra):
    """Recompute the breakdown on the tentative state, then persist it"""
    _, loyalty_customer = load_loyalty_customer(checkout.customer_id)
    checkout.breakdown(loyalty_customer)
    checkout.save()
    return _state_response(checkout, **extra)


def _add_to_cart(checkout, product, quantity):
    if product is None:
        raise ValidationError('Product not found', field='product_id')
    line = checkout.cart.add_product(product.to_catalog_record(), quantity)
    return _commit(checkout, line=line.to_dict())


@bp.route('/')
@login_required
@permission_required(Permissions.POS_VIEW)
def index():
    """Current checkout state"""
    return _state_response(CheckoutSession(session))


@bp.route('/search')
@login_required
@permission_required(Permissions.POS_VIEW)
def search():
    """Resolve a search term to at most one product"""
    product = find_product(request.args.get('q', ''))
    return jsonify({'success': True, 'product': product.to_dict() if product else None})


@bp.route('/cart/add', methods=['POST'])
@login_required
@permission_required(Permissions.POS_CREATE_SALE)
def add_to_cart():
    """Add a product by id or by search term"""
    data = get_request_data()
    quantity = data.get('quantity', 1)

    if data.get('product_id') is not None:
        product = get_product(to_int(data['product_id'], 'product_id'))
    else:
        product = find_product(data.get('query'))

    return _add_to_cart(CheckoutSession(session), product, quantity)


@bp.route('/scan', methods=['POST'])
@login_required
@permission_required(Permissions.POS_CREATE_SALE)
def scan():
    """Decoded barcode from the camera scanner"""
    code = normalize_code(get_request_data().get('code'))
    if not code:
        raise ValidationError('No barcode received', field='code')

    checkout = CheckoutSession(session)
    debouncer = ScanDebouncer(
        dict(checkout.scan_state),
        cooldown=current_app.config['SCAN_COOLDOWN_SECONDS']
    )
    if not debouncer.accept(code):
        return jsonify({'success': True, 'ignored': True})

    # The cooldown starts on every accepted decode, whether or not the add succeeds
    checkout.scan_state = debouncer.state
    checkout.save()

    product = find_product(code)
    if product is None:
        raise ValidationError(f'No product matches {code}', field='code')

    return _add_to_cart(checkout, product, 1)


@bp.route('/cart/<int:product_id>/quantity', methods=['POST'])
@login_required
@permission_required(Permissions.POS_CREATE_SALE)
def update_quantity(product_id):
    """Set a line's quantity; below 1 removes the line"""
    checkout = CheckoutSession(session)
    quantity = get_request_data().get('quantity')
    if quantity is None:
        raise ValidationError('Quantity is required', field='quantity')

    product = get_product(product_id)
    if product is None and product_id in checkout.cart:
        raise ValidationError('Product is no longer available', field='product_id')
    stock = (product.stock or 0) if product else None
    checkout.cart.update_quantity(product_id, quantity, stock_on_hand=stock)
    return _commit(checkout)


@bp.route('/cart/<int:product_id>', methods=['DELETE'])
@login_required
@permission_required(Permissions.POS_CREATE_SALE)
def remove_from_cart(product_id):
    checkout = CheckoutSession(session)
    checkout.cart.remove(product_id)
    return _commit(checkout)


@bp.route('/cart/clear', methods=['POST'])
@login_required
@permission_required(Permissions.POS_CREATE_SALE)
def clear_cart():
    """Abandon the checkout"""
    checkout = CheckoutSession(session)
    checkout.clear()
    return _state_response(checkout)


@bp.route('/customer', methods=['POST'])
@login_required
@permission_required(Permissions.CUSTOMERS_LOOKUP)
def select_customer():
    """Attach a loyalty customer to the checkout"""
    checkout = CheckoutSession(session)
    customer_id = get_request_data().get('customer_id')
    if customer_id is None:
        raise ValidationError('Customer is required', field='customer_id')

    checkout.select_customer(to_int(customer_id, 'customer_id'))
    return _commit(checkout)


@bp.route('/customer', methods=['DELETE'])
@login_required
@permission_required(Permissions.POS_CREATE_SALE)
def clear_customer():
    checkout = CheckoutSession(session)
    checkout.clear_customer()
    return _commit(checkout)


@bp.route('/redemption', methods=['POST'])
@login_required
@permission_required(Permissions.POS_CREATE_SALE)
def set_redemption():
    """Points to convert into a discount"""
    checkout = CheckoutSession(session)
    points = get_request_data().get('points', 0)
    _, loyalty_customer = load_loyalty_customer(checkout.customer_id)
    checkout.set_redemption(points, loyalty_customer)
    return _commit(checkout)


@bp.route('/payment-method', methods=['POST'])
@login_required
@permission_required(Permissions.POS_CREATE_SALE)
def set_payment_method():
    checkout = CheckoutSession(session)
    checkout.set_payment_method(get_request_data().get('payment_method'))
    return _commit(checkout)


@bp.route('/breakdown')
@login_required
@permission_required(Permissions.POS_VIEW)
def breakdown():
    """Bill breakdown for the current checkout"""
    checkout = CheckoutSession(session)
    _, loyalty_customer = load_loyalty_customer(checkout.customer_id)
    return jsonify({'success': True, 'breakdown': checkout.breakdown(loyalty_customer).to_dict()})


@bp.route('/checkout', methods=['POST'])
@login_required
@permission_required(Permissions.POS_CREATE_SALE)
def checkout():
    """Complete payment; the checkout is cleared only once the sale is stored"""
    state = CheckoutSession(session)
    data = get_request_data()
    if data.get('payment_method'):
        state.set_payment_method(data['payment_method'])

    sale, result = complete_sale(
        state.cart,
        cashier_id=current_user.id,
        customer_id=state.customer_id,
        points_to_redeem=state.points_to_redeem,
        payment_method=state.payment_method,
    )

    state.clear()
    log_activity(current_user.id, 'create_sale', 'sale', sale.id,
                 f'Sale {sale.sale_number} for {result.total}')

    return jsonify({
        'success': True,
        'sale': sale.to_dict(include_items=True),
        'breakdown': result.to_dict(),
        'invoice': build_invoice(sale),
    }), 201


@bp.route('/invoice/<int:sale_id>')
@login_required
@permission_required(Permissions.POS_VIEW)
def invoice(sale_id):
    """Invoice payload for a completed sale"""
    sale = db.get_or_404(Sale, sale_id)
    return jsonify({'success': True, 'invoice': build_invoice(sale)})
