"""
Product Catalog Routes
Listing, search and product maintenance
"""

from flask import Blueprint, request, jsonify, current_app
from flask_login import login_required, current_user
from datetime import datetime
from sqlalchemy.exc import SQLAlchemyError
from pos_dashboard.errors import ValidationError, UpstreamDataError
from pos_dashboard.models import db, Product
from pos_dashboard.routes.auth import log_activity
from pos_dashboard.services.checkout_calculator import to_decimal, to_int, HUNDRED
from pos_dashboard.utils.helpers import generate_product_code, get_request_data, parse_bool
from pos_dashboard.utils.permissions import permission_required, Permissions

bp = Blueprint('products', __name__)


def _apply_product_fields(product, data, creating=False):
    """Validate request fields and copy them onto the product"""
    if creating or 'name' in data:
        name = (data.get('name') or '').strip()
        if not name:
            raise ValidationError('Product name is required', field='name')
        product.name = name

    if creating or 'price' in data:
        price = to_decimal(data.get('price'), 'price')
        if price < 0:
            raise ValidationError('Price cannot be negative', field='price')
        product.price = price

    if 'cost_price' in data:
        cost_price = to_decimal(data.get('cost_price') or 0, 'cost_price')
        if cost_price < 0:
            raise ValidationError('Cost price cannot be negative', field='cost_price')
        product.cost_price = cost_price

    if 'gst' in data:
        gst = to_decimal(data.get('gst') or 0, 'gst')
        if gst < 0 or gst > HUNDRED:
            raise ValidationError('GST rate must be between 0 and 100', field='gst')
        product.gst = gst

    if 'stock' in data:
        stock = to_int(data.get('stock') or 0, 'stock')
        if stock < 0:
            raise ValidationError('Stock cannot be negative', field='stock')
        product.stock = stock

    if 'min_stock_level' in data:
        level = data.get('min_stock_level')
        product.min_stock_level = to_int(level, 'min_stock_level') if level not in (None, '') else None

    if 'expiry_date' in data:
        expiry = data.get('expiry_date')
        try:
            product.expiry_date = datetime.strptime(expiry, '%Y-%m-%d').date() if expiry else None
        except (TypeError, ValueError):
            raise ValidationError('Expiry date must be YYYY-MM-DD', field='expiry_date')

    for field in ('category', 'description'):
        if field in data:
            setattr(product, field, data.get(field) or None)

    if 'is_active' in data:
        product.is_active = parse_bool(data.get('is_active'), default=True)

    code = (data.get('code') or '').strip()
    if code:
        clash = Product.query.filter(Product.code == code, Product.id != product.id).first()
        if clash:
            raise ValidationError(f'Product code {code} already exists', field='code')
        product.code = code
    elif creating:
        product.code = generate_product_code()

    if 'barcode' in data:
        barcode = (data.get('barcode') or '').strip() or None
        if barcode:
            clash = Product.query.filter(Product.barcode == barcode, Product.id != product.id).first()
            if clash:
                raise ValidationError(f'Barcode {barcode} already exists', field='barcode')
        product.barcode = barcode


def _save(product, action):
    try:
        db.session.add(product)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Error saving product: {e}")
        raise UpstreamDataError('Could not save the product')
    log_activity(current_user.id, action, 'product', product.id, f'{product.code} - {product.name}')


@bp.route('/')
@login_required
@permission_required(Permissions.PRODUCTS_VIEW)
def index():
    """Product list with search, category filter and pagination"""
    page = request.args.get('page', 1, type=int)
    per_page = request.args.get('per_page', current_app.config['ITEMS_PER_PAGE'], type=int)
    search = request.args.get('search', '').strip()
    category = request.args.get('category', '').strip()
    include_inactive = parse_bool(request.args.get('include_inactive'))

    query = Product.query
    if not include_inactive:
        query = query.filter(Product.is_active == True)
    if search:
        query = query.filter(
            db.or_(
                Product.code.ilike(f'%{search}%'),
                Product.barcode.ilike(f'%{search}%'),
                Product.name.ilike(f'%{search}%')
            )
        )
    if category:
        query = query.filter(Product.category == category)

    products = query.order_by(Product.name).paginate(page=page, per_page=per_page, error_out=False)

    return jsonify({
        'products': [p.to_dict() for p in products.items],
        'page': products.page,
        'pages': products.pages,
        'total': products.total,
    })


@bp.route('/categories')
@login_required
@permission_required(Permissions.PRODUCTS_VIEW)
def categories():
    rows = db.session.query(Product.category).filter(Product.category.isnot(None)).distinct().all()
    return jsonify({'categories': sorted(row[0] for row in rows)})


@bp.route('/<int:product_id>')
@login_required
@permission_required(Permissions.PRODUCTS_VIEW)
def view_product(product_id):
    product = db.get_or_404(Product, product_id)
    data = product.to_dict()
    data['profit_margin'] = round(float(product.profit_margin), 2)
    data['days_until_expiry'] = product.days_until_expiry
    return jsonify({'success': True, 'product': data})


@bp.route('/', methods=['POST'])
@login_required
@permission_required(Permissions.PRODUCTS_MANAGE)
def add_product():
    """Create a catalog product"""
    product = Product()
    _apply_product_fields(product, get_request_data(), creating=True)
    _save(product, 'create_product')
    current_app.logger.info(f"Product {product.code} created by {current_user.username}")
    return jsonify({'success': True, 'product': product.to_dict()}), 201


@bp.route('/<int:product_id>', methods=['PUT', 'PATCH'])
@login_required
@permission_required(Permissions.PRODUCTS_MANAGE)
def edit_product(product_id):
    product = db.get_or_404(Product, product_id)
    _apply_product_fields(product, get_request_data())
    _save(product, 'update_product')
    return jsonify({'success': True, 'product': product.to_dict()})


@bp.route('/<int:product_id>', methods=['DELETE'])
@login_required
@permission_required(Permissions.PRODUCTS_MANAGE)
def delete_product(product_id):
    """Soft delete: sold products stay referenced by their sale items"""
    product = db.get_or_404(Product, product_id)
    product.is_active = False
    _save(product, 'delete_product')
    return jsonify({'success': True, 'message': 'Product deleted successfully'})
