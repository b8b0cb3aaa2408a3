"""
Flask Application Factory for the Signage Pairing Service.

This module provides the create_app() factory function that creates and
configures the Flask application. It initializes:
- SQLAlchemy database connection (SQLite by default)
- Security extensions (Flask-Talisman, Flask-Limiter)
- ProxyFix when the app runs behind a configured number of proxies
- Flask-Login for dashboard sessions
- The activation rate limiter
- Blueprint registration
- Error handlers
- Logging configuration
- Optional owner account seeding

Usage:
    # Development
    python -m signage.app

    # Production
    gunicorn -w 4 -b 0.0.0.0:5002 'signage.app:create_app()'
"""

import logging
import os
import secrets
from datetime import datetime, timezone
from typing import Optional

from flask import Flask, jsonify
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_login import LoginManager
from flask_migrate import Migrate
from flask_talisman import Talisman
from werkzeug.middleware.proxy_fix import ProxyFix

from signage.config import get_config
from signage.models import db, User
from signage.services.rate_limiter import create_rate_limiter

# Global migrate instance
migrate = Migrate()


def create_app(config_name: Optional[str] = None) -> Flask:
    """
    Create and configure the Flask application.

    Args:
        config_name: Configuration environment name ('development', 'testing', 'production').
                    If None, reads from FLASK_ENV environment variable.

    Returns:
        Configured Flask application instance.
    """
    app = Flask(__name__)

    # Load configuration
    config_class = get_config(config_name)
    app.config.from_object(config_class)
    config_class.init_app(app)

    # Store config class for reference
    app.config['CONFIG_CLASS'] = config_class

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    if app.config['PROXY_FIX_X_FOR']:
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=app.config['PROXY_FIX_X_FOR'], x_proto=1)

    _init_security(app, config_class)

    login_manager = LoginManager()
    login_manager.init_app(app)

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, user_id)

    # Brute-force protection for code redemption
    app.extensions['activation_rate_limiter'] = create_rate_limiter(app.config)

    # Create database tables and seed default data
    with app.app_context():
        db.create_all()
        _seed_owner(app)

    _configure_logging(app)

    _register_blueprints(app)

    _register_error_handlers(app)

    @app.route('/health')
    @app.route('/api/health')
    def health_check():
        """Health check endpoint for monitoring."""
        return jsonify({
            'status': 'healthy',
            'service': 'signage',
            'timestamp': datetime.now(timezone.utc).isoformat()
        })

    return app


def _init_security(app: Flask, config_class) -> None:
    """
    Initialize security extensions for the application.

    - Flask-Talisman security headers (production only)
    - Flask-Limiter coarse per-IP request limiting

    Args:
        app: Flask application instance.
        config_class: Configuration class being used.
    """
    is_production = config_class.__name__ == 'ProductionConfig'

    if is_production:
        Talisman(
            app,
            force_https=True,
            strict_transport_security=True,
            strict_transport_security_max_age=31536000,  # 1 year
            content_security_policy={'default-src': "'self'"},
            frame_options='DENY',
        )
        app.logger.info('Security headers enabled (Flask-Talisman)')

    limiter = Limiter(
        key_func=get_remote_address,
        app=app,
        default_limits=[app.config['RATELIMIT_DEFAULT']],
        storage_uri=app.config['RATELIMIT_STORAGE_URI'],
    )
    # Store limiter on app for route-specific limits
    app.limiter = limiter


def _seed_owner(app: Flask) -> None:
    """
    Create the first dashboard account when SEED_OWNER_EMAIL is configured.

    The account receives a random temporary password that is logged once.

    Args:
        app: Flask application instance.
    """
    email = app.config.get('SEED_OWNER_EMAIL')
    if not email:
        return

    email = email.lower().strip()
    if User.query.filter_by(email=email).first():
        app.logger.debug(f'User {email} already exists, skipping')
        return

    temp_password = secrets.token_urlsafe(16)

    user = User(email=email, name='Owner')
    user.set_password(temp_password)
    db.session.add(user)

    try:
        db.session.commit()
        app.logger.info(f'Created owner user: {email} (temporary password: {temp_password})')
    except Exception as e:
        db.session.rollback()
        app.logger.error(f'Failed to seed owner user: {e}')


def _configure_logging(app: Flask) -> None:
    """
    Configure application logging.

    Args:
        app: Flask application instance.
    """
    log_dir = app.config.get('BASE_DIR', os.getcwd())
    if hasattr(log_dir, '__truediv__'):  # Path object
        log_dir = log_dir / 'logs'
    else:
        log_dir = os.path.join(log_dir, 'logs')

    # Set up file handler if log path is writable
    try:
        os.makedirs(log_dir, exist_ok=True)
        log_file = os.path.join(str(log_dir), 'signage.log')
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.INFO)
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        ))
        # app.logger ('signage.app') propagates to the package logger
        signage_logger = logging.getLogger('signage')
        if not any(getattr(h, 'baseFilename', None) == file_handler.baseFilename
                   for h in signage_logger.handlers):
            signage_logger.addHandler(file_handler)
        else:
            file_handler.close()
    except (OSError, PermissionError):
        # Log path not writable, skip file logging
        pass

    app.logger.setLevel(logging.INFO)
    logging.getLogger('signage').setLevel(logging.INFO)


def _register_blueprints(app: Flask) -> None:
    """
    Register API blueprints with the application.

    Args:
        app: Flask application instance.
    """
    from signage.routes import auth_bp, screens_bp, player_bp, device_bindings_bp

    app.register_blueprint(auth_bp, url_prefix='/api/auth')
    app.register_blueprint(screens_bp, url_prefix='/api/screens')
    app.register_blueprint(player_bp, url_prefix='/api')
    app.register_blueprint(device_bindings_bp, url_prefix='/api/device-bindings')
    app.logger.info('Registered auth, screens, player and device-bindings blueprints')


def _register_error_handlers(app: Flask) -> None:
    """
    Register JSON error handlers for common HTTP errors.

    Args:
        app: Flask application instance.
    """
    @app.errorhandler(400)
    def bad_request(error):
        return jsonify({
            'status': 'error',
            'error': 'Bad Request',
            'message': str(error.description) if hasattr(error, 'description') else 'Invalid request'
        }), 400

    @app.errorhandler(401)
    def unauthorized(error):
        return jsonify({
            'status': 'error',
            'error': 'Unauthorized',
            'message': 'Authentication required'
        }), 401

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({
            'status': 'error',
            'error': 'Not Found',
            'message': 'The requested resource was not found'
        }), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({
            'status': 'error',
            'error': 'Method Not Allowed',
            'message': 'The method is not allowed for the requested URL'
        }), 405

    @app.errorhandler(429)
    def too_many_requests(error):
        return jsonify({
            'status': 'error',
            'error': 'Too Many Requests',
            'message': str(error.description) if hasattr(error, 'description') else 'Rate limit exceeded'
        }), 429

    @app.errorhandler(500)
    def internal_server_error(error):
        return jsonify({
            'status': 'error',
            'error': 'Internal Server Error',
            'message': 'An unexpected error occurred'
        }), 500


if __name__ == '__main__':
    # Development server
    application = create_app()
    config = application.config['CONFIG_CLASS']
    application.run(
        host=config.HOST,
        port=config.PORT,
        debug=config.DEBUG
    )
