"""
Flask Application Factory
Initializes and configures the Flask application
"""

import os
from flask import Flask, jsonify
from flask_login import LoginManager
from flask_migrate import Migrate
from flask_wtf.csrf import CSRFProtect, CSRFError
from werkzeug.exceptions import HTTPException
from config import config
from pos_dashboard.errors import CheckoutError
from pos_dashboard.models import db, User

# Initialize extensions
login_manager = LoginManager()
migrate = Migrate()
csrf = CSRFProtect()


def create_app(config_name='default'):
    """
    Application factory pattern
    Creates and configures Flask application
    """
    app = Flask(__name__)

    # Load configuration
    app.config.from_object(config[config_name])

    # Validate secret key in production
    if config_name == 'production':
        if not app.config.get('SECRET_KEY') or app.config['SECRET_KEY'] == 'dev-secret-key-change-in-production':
            raise ValueError("Production requires a secure SECRET_KEY. Set it via environment variable.")
        if len(app.config['SECRET_KEY']) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters for production.")

    # Initialize extensions
    db.init_app(app)
    login_manager.init_app(app)
    migrate.init_app(app, db)
    csrf.init_app(app)

    @login_manager.user_loader
    def load_user(user_id):
        """Load user by ID for Flask-Login"""
        user = db.session.get(User, int(user_id))
        return user if user and user.is_active else None

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({'success': False, 'error': 'Authentication required'}), 401

    os.makedirs(app.config['LOG_FOLDER'], exist_ok=True)

    # Register blueprints
    from pos_dashboard.routes.auth import bp as auth_bp
    app.register_blueprint(auth_bp, url_prefix='/auth')

    from pos_dashboard.routes.pos import bp as pos_bp
    app.register_blueprint(pos_bp, url_prefix='/pos')

    from pos_dashboard.routes.products import bp as products_bp
    app.register_blueprint(products_bp, url_prefix='/products')

    from pos_dashboard.routes.customers import bp as customers_bp
    app.register_blueprint(customers_bp, url_prefix='/customers')

    from pos_dashboard.routes.discounts import bp as discounts_bp
    app.register_blueprint(discounts_bp, url_prefix='/discounts')

    from pos_dashboard.routes.stock import bp as stock_bp
    app.register_blueprint(stock_bp, url_prefix='/stock')

    from pos_dashboard.routes.reports import bp as reports_bp
    app.register_blueprint(reports_bp, url_prefix='/reports')

    @app.route('/')
    def index():
        """Service banner"""
        return jsonify({
            'name': app.config.get('BUSINESS_NAME'),
            'currency': app.config.get('CURRENCY'),
            'status': 'ok'
        })

    # Error handlers
    @app.errorhandler(CheckoutError)
    def checkout_error(error):
        # Discard half-applied changes from the rejected request
        db.session.rollback()
        app.logger.warning(f"{type(error).__name__}: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(CSRFError)
    def handle_csrf_error(error):
        return jsonify({
            'success': False,
            'error': 'CSRF token missing or invalid',
            'message': 'Please refresh the page and try again'
        }), 400

    @app.errorhandler(HTTPException)
    def http_error(error):
        return jsonify({'success': False, 'error': error.description}), error.code

    @app.errorhandler(Exception)
    def internal_error(error):
        db.session.rollback()
        app.logger.exception(f"Unhandled error: {error}")
        from pos_dashboard.utils.error_logger import log_error
        log_error(error, 500)
        return jsonify({'success': False, 'error': 'Internal server error'}), 500

    @app.before_request
    def before_request():
        from flask import session
        session.permanent = True

    @app.after_request
    def add_security_headers(response):
        """Add security headers to all responses"""
        response.headers['Content-Security-Policy'] = "default-src 'self'; frame-ancestors 'none'; form-action 'self';"
        response.headers['X-Frame-Options'] = 'DENY'
        response.headers['X-Content-Type-Options'] = 'nosniff'
        response.headers['Referrer-Policy'] = 'strict-origin-when-cross-origin'
        # Camera stays allowed for the barcode scanner
        response.headers['Permissions-Policy'] = 'geolocation=(), microphone=(), camera=(self)'
        return response

    return app
