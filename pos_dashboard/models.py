"""
Database Models
SQLAlchemy ORM models for the POS dashboard
"""

from datetime import datetime, date, timedelta
from flask import current_app, has_app_context
from flask_sqlalchemy import SQLAlchemy
from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash

db = SQLAlchemy()


# Role -> permission names. 'all' grants everything.
ROLE_PERMISSIONS = {
    'admin': ['all'],
    'manager': [
        'pos.view', 'pos.create_sale',
        'products.view', 'products.manage',
        'customers.lookup',
        'discounts.manage',
        'stock.manage',
        'reports.view',
    ],
    'cashier': [
        'pos.view', 'pos.create_sale',
        'products.view',
        'customers.lookup',
    ],
}


class User(UserMixin, db.Model):
    """User model for authentication and authorization"""
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), unique=True, nullable=False, index=True)
    email = db.Column(db.String(120), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    full_name = db.Column(db.String(128), nullable=False)
    role = db.Column(db.String(32), nullable=False, default='cashier')
    # Roles: admin, manager, cashier
    is_active = db.Column(db.Boolean, default=True)
    last_login = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    sales = db.relationship('Sale', backref='cashier', lazy='dynamic')
    stock_movements = db.relationship('StockMovement', backref='user', lazy='dynamic')

    def set_password(self, password):
        """Hash and set password"""
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        """Verify password"""
        return check_password_hash(self.password_hash, password)

    def has_permission(self, permission):
        """Check if user's role grants a permission"""
        permissions = ROLE_PERMISSIONS.get(self.role, [])
        return 'all' in permissions or permission in permissions

    def has_role(self, *role_names):
        return self.role in role_names

    def to_dict(self):
        return {
            'id': self.id,
            'username': self.username,
            'full_name': self.full_name,
            'email': self.email,
            'role': self.role,
        }

    def __repr__(self):
        return f'<User {self.username}>'


class Product(db.Model):
    """Catalog item with price, GST and stock"""
    __tablename__ = 'products'

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(64), unique=True, nullable=False, index=True)
    barcode = db.Column(db.String(128), unique=True, index=True)
    name = db.Column(db.String(256), nullable=False, index=True)
    category = db.Column(db.String(128))
    description = db.Column(db.Text)

    # Pricing
    cost_price = db.Column(db.Numeric(10, 2), nullable=False, default=0.00)
    price = db.Column(db.Numeric(10, 2), nullable=False, default=0.00)
    gst = db.Column(db.Numeric(5, 2), default=0.00)  # GST percentage

    # Stock
    stock = db.Column(db.Integer, default=0)
    min_stock_level = db.Column(db.Integer)
    expiry_date = db.Column(db.Date)
    is_active = db.Column(db.Boolean, default=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    sale_items = db.relationship('SaleItem', backref='product', lazy='dynamic')
    stock_movements = db.relationship('StockMovement', backref='product', lazy='dynamic')

    @property
    def effective_min_stock_level(self):
        """Own minimum level, else the configured default"""
        if self.min_stock_level:
            return self.min_stock_level
        if has_app_context():
            return current_app.config.get('LOW_STOCK_THRESHOLD', 10)
        return 10

    @property
    def is_low_stock(self):
        """Check if product is at or below its minimum stock level"""
        return (self.stock or 0) <= self.effective_min_stock_level

    @property
    def shortfall(self):
        """Units needed to get back to the minimum stock level"""
        return max(self.effective_min_stock_level - (self.stock or 0), 0)

    @property
    def days_until_expiry(self):
        if not self.expiry_date:
            return None
        return (self.expiry_date - date.today()).days

    def is_expiring_within(self, days):
        """In stock and expiring on or before today + days"""
        if not self.expiry_date or (self.stock or 0) <= 0:
            return False
        return self.expiry_date <= date.today() + timedelta(days=days)

    @property
    def profit_margin(self):
        """Calculate profit margin percentage"""
        if self.cost_price and self.cost_price > 0:
            return ((self.price - self.cost_price) / self.cost_price) * 100
        return 0

    def to_catalog_record(self):
        """Shape consumed by the cart"""
        return {
            'id': self.id,
            'name': self.name,
            'unit_price': self.price,
            'tax_rate_percent': self.gst or 0,
            'stock_on_hand': self.stock or 0,
        }

    def to_dict(self):
        return {
            'id': self.id,
            'code': self.code,
            'barcode': self.barcode,
            'name': self.name,
            'category': self.category,
            'description': self.description,
            'price': float(self.price or 0),
            'cost_price': float(self.cost_price or 0),
            'gst': float(self.gst or 0),
            'stock': self.stock or 0,
            'min_stock_level': self.effective_min_stock_level,
            'expiry_date': self.expiry_date.isoformat() if self.expiry_date else None,
            'is_low_stock': self.is_low_stock,
            'is_active': self.is_active,
        }

    def __repr__(self):
        return f'<Product {self.code} - {self.name}>'


class LoyaltyTier(db.Model):
    """Loyalty bracket keyed by a points threshold"""
    __tablename__ = 'loyalty_tiers'

    id = db.Column(db.Integer, primary_key=True)
    tier_name = db.Column(db.String(64), unique=True, nullable=False)
    min_points = db.Column(db.Integer, nullable=False, default=0, index=True)
    discount_percentage = db.Column(db.Numeric(5, 2), nullable=False, default=0.00)
    points_multiplier = db.Column(db.Numeric(4, 2), nullable=False, default=1.00)
    color = db.Column(db.String(16), default='#6b7280')

    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    @classmethod
    def for_points(cls, points):
        """Highest tier whose threshold the given points reach"""
        return cls.query.filter(cls.min_points <= (points or 0))\
            .order_by(cls.min_points.desc())\
            .first()

    def to_dict(self):
        return {
            'id': self.id,
            'tier_name': self.tier_name,
            'min_points': self.min_points,
            'discount_percentage': float(self.discount_percentage or 0),
            'points_multiplier': float(self.points_multiplier or 0),
            'color': self.color,
        }

    def __repr__(self):
        return f'<LoyaltyTier {self.tier_name}>'


class Customer(db.Model):
    """Loyalty customer"""
    __tablename__ = 'customers'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False, index=True)
    phone = db.Column(db.String(32), unique=True, nullable=False, index=True)
    email = db.Column(db.String(120))
    total_points = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    sales = db.relationship('Sale', backref='customer', lazy='dynamic')
    loyalty_transactions = db.relationship('LoyaltyTransaction', backref='customer', lazy='dynamic',
                                           cascade='all, delete-orphan')

    @property
    def tier(self):
        return LoyaltyTier.for_points(self.total_points)

    @property
    def total_purchases(self):
        return db.session.query(db.func.sum(Sale.total))\
            .filter(Sale.customer_id == self.id)\
            .scalar() or 0

    def to_dict(self, include_tier=True):
        data = {
            'id': self.id,
            'name': self.name,
            'phone': self.phone,
            'email': self.email,
            'total_points': self.total_points or 0,
        }
        if include_tier:
            tier = self.tier
            data['tier'] = tier.to_dict() if tier else None
        return data

    def __repr__(self):
        return f'<Customer {self.name}>'


class Discount(db.Model):
    """Discount codes managed by admins and managers"""
    __tablename__ = 'discounts'

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(32), unique=True, nullable=False, index=True)
    description = db.Column(db.Text)
    discount_type = db.Column(db.String(16), nullable=False, default='percentage')  # percentage or fixed
    discount_value = db.Column(db.Numeric(10, 2), nullable=False, default=0.00)
    min_purchase_amount = db.Column(db.Numeric(10, 2), default=0.00)
    max_discount_amount = db.Column(db.Numeric(10, 2), default=0.00)  # 0 = no cap
    is_active = db.Column(db.Boolean, default=True)

    created_by = db.Column(db.Integer, db.ForeignKey('users.id'))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    TYPES = ('percentage', 'fixed')

    def to_dict(self):
        return {
            'id': self.id,
            'code': self.code,
            'description': self.description,
            'discount_type': self.discount_type,
            'discount_value': float(self.discount_value or 0),
            'min_purchase_amount': float(self.min_purchase_amount or 0),
            'max_discount_amount': float(self.max_discount_amount or 0),
            'is_active': self.is_active,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f'<Discount {self.code}>'


class Sale(db.Model):
    """Persisted, immutable sale record"""
    __tablename__ = 'sales'

    id = db.Column(db.Integer, primary_key=True)
    sale_number = db.Column(db.String(64), unique=True, nullable=False, index=True)

    # References
    customer_id = db.Column(db.Integer, db.ForeignKey('customers.id'))
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)

    # Amounts
    subtotal = db.Column(db.Numeric(10, 2), nullable=False, default=0.00)
    gst_amount = db.Column(db.Numeric(10, 2), nullable=False, default=0.00)
    tier_discount = db.Column(db.Numeric(10, 2), default=0.00)
    points_discount = db.Column(db.Numeric(10, 2), default=0.00)
    total = db.Column(db.Numeric(10, 2), nullable=False, default=0.00)

    # Loyalty
    points_redeemed = db.Column(db.Integer, default=0)
    points_earned = db.Column(db.Integer, default=0)

    payment_method = db.Column(db.String(32), nullable=False)  # cash, card, upi

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    # Relationships
    items = db.relationship('SaleItem', backref='sale', lazy='dynamic', cascade='all, delete-orphan')

    PAYMENT_METHODS = ('cash', 'card', 'upi')

    @property
    def discount_amount(self):
        return (self.tier_discount or 0) + (self.points_discount or 0)

    def to_dict(self, include_items=False):
        data = {
            'id': self.id,
            'sale_number': self.sale_number,
            'customer_id': self.customer_id,
            'cashier_id': self.user_id,
            'payment_method': self.payment_method,
            'subtotal': float(self.subtotal or 0),
            'gst_amount': float(self.gst_amount or 0),
            'tier_discount': float(self.tier_discount or 0),
            'points_discount': float(self.points_discount or 0),
            'discount_amount': float(self.discount_amount),
            'total': float(self.total or 0),
            'points_redeemed': self.points_redeemed or 0,
            'points_earned': self.points_earned or 0,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
        if include_items:
            data['items'] = [item.to_dict() for item in self.items]
        return data

    def __repr__(self):
        return f'<Sale {self.sale_number}>'


class SaleItem(db.Model):
    """Individual line of a sale, with the name and price as sold"""
    __tablename__ = 'sale_items'

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey('sales.id'), nullable=False)
    product_id = db.Column(db.Integer, db.ForeignKey('products.id'), nullable=False)

    product_name = db.Column(db.String(256), nullable=False)
    quantity = db.Column(db.Integer, nullable=False, default=1)
    price = db.Column(db.Numeric(10, 2), nullable=False)
    gst = db.Column(db.Numeric(5, 2), default=0.00)

    @property
    def line_total(self):
        return self.price * self.quantity

    def to_dict(self):
        return {
            'product_id': self.product_id,
            'product_name': self.product_name,
            'quantity': self.quantity,
            'price': float(self.price),
            'gst': float(self.gst or 0),
            'line_total': float(self.line_total),
        }

    def __repr__(self):
        return f'<SaleItem {self.id}>'


class StockMovement(db.Model):
    """Track all stock movements (sale/adjustment)"""
    __tablename__ = 'stock_movements'

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey('products.id'), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'))

    movement_type = db.Column(db.String(32), nullable=False)  # sale, adjustment
    quantity = db.Column(db.Integer, nullable=False)  # Positive for in, negative for out
    reference = db.Column(db.String(128))
    notes = db.Column(db.Text)

    timestamp = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    def __repr__(self):
        return f'<StockMovement {self.movement_type} - {self.quantity}>'


class LoyaltyTransaction(db.Model):
    """Loyalty ledger: one row per earn or redeem event"""
    __tablename__ = 'loyalty_transactions'

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey('customers.id'), nullable=False, index=True)
    sale_id = db.Column(db.Integer, db.ForeignKey('sales.id'))

    transaction_type = db.Column(db.String(16), nullable=False)  # earn, redeem
    points_earned = db.Column(db.Integer, default=0)
    points_redeemed = db.Column(db.Integer, default=0)
    description = db.Column(db.String(256))

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    def to_dict(self):
        return {
            'id': self.id,
            'sale_id': self.sale_id,
            'transaction_type': self.transaction_type,
            'points_earned': self.points_earned or 0,
            'points_redeemed': self.points_redeemed or 0,
            'description': self.description,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f'<LoyaltyTransaction {self.transaction_type}>'


class ActivityLog(db.Model):
    """Log of all critical activities"""
    __tablename__ = 'activity_logs'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'))
    action = db.Column(db.String(128), nullable=False)
    entity_type = db.Column(db.String(64))  # sale, product, customer, discount, user
    entity_id = db.Column(db.Integer)
    details = db.Column(db.Text)
    ip_address = db.Column(db.String(64))

    timestamp = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    user = db.relationship('User')

    def __repr__(self):
        return f'<ActivityLog {self.action}>'


class ErrorLog(db.Model):
    """Unhandled errors captured with request context"""
    __tablename__ = 'error_logs'

    id = db.Column(db.Integer, primary_key=True)
    timestamp = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    error_type = db.Column(db.String(128))
    error_message = db.Column(db.Text)
    traceback = db.Column(db.Text)
    request_url = db.Column(db.String(512))
    request_method = db.Column(db.String(16))
    request_data = db.Column(db.Text)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'))
    ip_address = db.Column(db.String(64))
    status_code = db.Column(db.Integer)
    endpoint = db.Column(db.String(128))
    is_resolved = db.Column(db.Boolean, default=False)

    def __repr__(self):
        return f'<ErrorLog {self.error_type}>'


DEFAULT_TIERS = [
    {'tier_name': 'Bronze', 'min_points': 0, 'discount_percentage': 0, 'points_multiplier': 1.0, 'color': '#cd7f32'},
    {'tier_name': 'Silver', 'min_points': 500, 'discount_percentage': 5, 'points_multiplier': 1.25, 'color': '#c0c0c0'},
    {'tier_name': 'Gold', 'min_points': 1000, 'discount_percentage': 10, 'points_multiplier': 1.5, 'color': '#ffd700'},
    {'tier_name': 'Platinum', 'min_points': 2500, 'discount_percentage': 15, 'points_multiplier': 2.0, 'color': '#e5e4e2'},
]


def seed_loyalty_tiers():
    """Insert the default tiers that are missing; returns the number created"""
    from decimal import Decimal

    created = 0
    for data in DEFAULT_TIERS:
        if LoyaltyTier.query.filter_by(tier_name=data['tier_name']).first():
            continue
        db.session.add(LoyaltyTier(
            tier_name=data['tier_name'],
            min_points=data['min_points'],
            discount_percentage=Decimal(str(data['discount_percentage'])),
            points_multiplier=Decimal(str(data['points_multiplier'])),
            color=data['color'],
        ))
        created += 1
    db.session.commit()
    return created
