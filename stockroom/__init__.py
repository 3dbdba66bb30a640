"""
Flask Application Factory
Initializes and configures the Flask application
"""

import os
from flask import Flask, jsonify, send_from_directory, session
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_login import LoginManager
from flask_migrate import Migrate
from flask_wtf.csrf import CSRFProtect, CSRFError
import sentry_sdk
from sentry_sdk.integrations.flask import FlaskIntegration

from config import config
from stockroom.errors import StockroomError
from stockroom.models import db, User
from stockroom.services.change_feed import ChangeFeed
from stockroom.services.data_store import SqlDataStore
from stockroom.services.storage import LocalObjectStorage
from stockroom.utils.cache import init_cache

# Initialize extensions
login_manager = LoginManager()
migrate = Migrate()
csrf = CSRFProtect()
limiter = Limiter(key_func=get_remote_address, default_limits=["2000 per day", "500 per hour"])


def create_app(config_name='default'):
    """
    Application factory pattern
    Creates and configures Flask application
    """
    app = Flask(__name__, static_folder=None)

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
    limiter.init_app(app)

    # Data store, change feed and object storage
    feed = ChangeFeed()
    storage = LocalObjectStorage(app.config['UPLOAD_FOLDER'], app.config['STORAGE_URL_PREFIX'])
    store = SqlDataStore(feed=feed, storage=storage)
    app.extensions['stockroom'] = {'store': store, 'feed': feed, 'storage': storage}

    init_cache(app, store)

    if app.config.get('SENTRY_DSN'):
        sentry_sdk.init(
            dsn=app.config['SENTRY_DSN'],
            integrations=[FlaskIntegration()],
            traces_sample_rate=0.1,
            environment=config_name
        )
        app.logger.info("Sentry error tracking initialized")

    @login_manager.user_loader
    def load_user(user_id):
        """Load user by ID for Flask-Login"""
        return db.session.get(User, user_id)

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({'success': False, 'error': 'Authentication required'}), 401

    # Create folders if they don't exist
    os.makedirs(app.config['UPLOAD_FOLDER'], exist_ok=True)
    os.makedirs(app.config['LOG_FOLDER'], exist_ok=True)

    # Register blueprints
    from stockroom.routes.auth import bp as auth_bp
    app.register_blueprint(auth_bp, url_prefix='/auth')

    from stockroom.routes.dashboard import bp as dashboard_bp
    app.register_blueprint(dashboard_bp)

    from stockroom.routes.inventory import bp as inventory_bp
    app.register_blueprint(inventory_bp, url_prefix='/inventory')

    from stockroom.routes.movements import bp as movements_bp
    app.register_blueprint(movements_bp, url_prefix='/movements')

    from stockroom.routes.requests import bp as requests_bp
    app.register_blueprint(requests_bp, url_prefix='/requests')

    from stockroom.routes.users import bp as users_bp
    app.register_blueprint(users_bp, url_prefix='/users')

    from stockroom.routes.reports import bp as reports_bp
    app.register_blueprint(reports_bp, url_prefix='/reports')

    from stockroom.routes.profile import bp as profile_bp
    app.register_blueprint(profile_bp, url_prefix='/profile')

    @app.route(f"{app.config['STORAGE_URL_PREFIX']}/<path:filename>")
    def uploaded_file(filename):
        """Serve objects from local storage"""
        return send_from_directory(app.config['UPLOAD_FOLDER'], filename)

    # Error handlers
    @app.errorhandler(StockroomError)
    def handle_stockroom_error(error):
        if error.status_code >= 500:
            app.logger.error(f"{type(error).__name__}: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(404)
    def not_found_error(error):
        return jsonify({'success': False, 'error': 'Not found'}), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({'success': False, 'error': 'Method not allowed'}), 405

    @app.errorhandler(429)
    def rate_limited(error):
        return jsonify({
            'success': False,
            'error': 'Too many requests',
            'message': str(getattr(error, 'description', '')) or 'Please slow down and try again'
        }), 429

    @app.errorhandler(500)
    def internal_error(error):
        from stockroom.utils.error_logger import log_error
        db.session.rollback()
        log_error(getattr(error, 'original_exception', None) or error)
        return jsonify({'success': False, 'error': 'Internal server error'}), 500

    @app.errorhandler(CSRFError)
    def handle_csrf_error(error):
        return jsonify({
            'success': False,
            'error': 'CSRF token missing or invalid',
            'message': 'Please refresh the page and try again'
        }), 400

    # Request hooks
    @app.before_request
    def before_request():
        session.permanent = True

    @app.after_request
    def add_security_headers(response):
        """Add security headers to all responses"""
        response.headers['X-Frame-Options'] = 'DENY'
        response.headers['X-Content-Type-Options'] = 'nosniff'
        response.headers['Referrer-Policy'] = 'strict-origin-when-cross-origin'
        response.headers['Permissions-Policy'] = 'geolocation=(), microphone=(), camera=()'
        return response

    app.logger.info(f"{app.config.get('ORGANIZATION_NAME', 'Stockroom')} inventory app created ({config_name})")
    return app
