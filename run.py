"""
Application Entry Point
Initializes the Flask application, logging and management commands
"""

import os
import logging
from decimal import Decimal
from datetime import date, timedelta
from pos_dashboard import create_app
from pos_dashboard.models import db

# Determine configuration environment
config_name = os.environ.get('FLASK_ENV', 'development')
app = create_app(config_name)

# Setup logging
if not os.path.exists(app.config['LOG_FOLDER']):
    os.makedirs(app.config['LOG_FOLDER'])

logging.basicConfig(
    level=getattr(logging, app.config['LOG_LEVEL']),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.FileHandler(os.path.join(app.config['LOG_FOLDER'], 'app.log')),
        logging.StreamHandler()
    ]
)

logger = logging.getLogger(__name__)


@app.shell_context_processor
def make_shell_context():
    """Make database and models available in Flask shell"""
    from pos_dashboard import models
    return {
        'db': db,
        'User': models.User,
        'Product': models.Product,
        'Sale': models.Sale,
        'Customer': models.Customer,
        'LoyaltyTier': models.LoyaltyTier,
    }


@app.cli.command('init-db')
def init_db():
    """Initialize the database with tables, loyalty tiers and an admin user"""
    from pos_dashboard.models import User, seed_loyalty_tiers

    logger.info("Initializing database...")
    db.create_all()

    created = seed_loyalty_tiers()
    logger.info(f"{created} loyalty tiers created")

    admin = User.query.filter_by(username='admin').first()
    if not admin:
        admin = User(
            username='admin',
            email='admin@example.com',
            full_name='Administrator',
            role='admin',
            is_active=True
        )
        admin.set_password(os.environ.get('ADMIN_PASSWORD', 'admin123'))
        db.session.add(admin)
        db.session.commit()
        logger.info("Default admin user created (username: admin)")

    logger.info("Database initialized successfully!")


@app.cli.command('seed-tiers')
def seed_tiers():
    """Insert the default loyalty tiers that are missing"""
    from pos_dashboard.models import seed_loyalty_tiers

    created = seed_loyalty_tiers()
    logger.info(f"{created} loyalty tiers created")


@app.cli.command('create-sample-data')
def create_sample_data():
    """Create sample users, products and customers for trying out the till"""
    from pos_dashboard.models import User, Product, Customer, seed_loyalty_tiers

    logger.info("Creating sample data...")
    seed_loyalty_tiers()

    users = [
        ('manager', 'manager@example.com', 'Store Manager', 'manager'),
        ('cashier', 'cashier@example.com', 'Front Cashier', 'cashier'),
    ]
    for username, email, full_name, role in users:
        if User.query.filter_by(username=username).first():
            continue
        user = User(username=username, email=email, full_name=full_name, role=role)
        user.set_password(f'{username}123')
        db.session.add(user)

    products = [
        ('P-1001', '8901000000011', 'Basmati Rice 1kg', 'Grocery', '90.00', '120.00', '5', 40, None),
        ('P-1002', '8901000000028', 'Sunflower Oil 1L', 'Grocery', '140.00', '175.00', '5', 25, None),
        ('P-1003', '8901000000035', 'Whole Milk 500ml', 'Dairy', '22.00', '28.00', '0', 8, date.today() + timedelta(days=5)),
        ('P-1004', '8901000000042', 'Dish Soap', 'Household', '35.00', '55.00', '18', 0, None),
        ('P-1005', '8901000000059', 'Green Tea 100g', 'Beverages', '110.00', '160.00', '12', 15, None),
    ]
    for code, barcode, name, category, cost, price, gst, stock, expiry in products:
        if Product.query.filter_by(code=code).first():
            continue
        db.session.add(Product(
            code=code, barcode=barcode, name=name, category=category,
            cost_price=Decimal(cost), price=Decimal(price), gst=Decimal(gst),
            stock=stock, expiry_date=expiry
        ))

    customers = [
        ('Asha Verma', '9876500001', 120),
        ('Ravi Kumar', '9876500002', 650),
        ('Meera Nair', '9876500003', 1800),
    ]
    for name, phone, points in customers:
        if Customer.query.filter_by(phone=phone).first():
            continue
        db.session.add(Customer(name=name, phone=phone, total_points=points))

    db.session.commit()
    logger.info("Sample data created successfully!")


if __name__ == '__main__':
    with app.app_context():
        db.create_all()

    app.run(
        host=os.environ.get('HOST', '0.0.0.0'),
        port=int(os.environ.get('PORT', 5000)),
        debug=app.config['DEBUG']
    )
