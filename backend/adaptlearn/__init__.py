import sys

from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_jwt_extended import JWTManager
from flask_cors import CORS
from flask_marshmallow import Marshmallow
from loguru import logger
from marshmallow import ValidationError

from config import config

db = SQLAlchemy()
migrate = Migrate()
jwt = JWTManager()
ma = Marshmallow()


def configure_logging(level):
    logger.remove()
    logger.add(
        sys.stderr,
        level=level,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | {name}:{function} - {message}",
    )


def create_app(config_name='default'):
    app = Flask(__name__)
    app.config.from_object(config[config_name])

    configure_logging(app.config.get('LOG_LEVEL', 'INFO'))
    logger.info(f"Starting adaptlearn backend ({config_name})")

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    jwt.init_app(app)
    ma.init_app(app)
    CORS(app, resources={r"/api/*": {"origins": "*"}}, supports_credentials=True)

    # JWT error handlers
    @jwt.expired_token_loader
    def expired_token_callback(jwt_header, jwt_payload):
        return jsonify({
            'message': 'Token has expired',
            'error': 'token_expired'
        }), 401

    @jwt.invalid_token_loader
    def invalid_token_callback(error):
        return jsonify({
            'message': f'Invalid token: {error}',
            'error': 'invalid_token'
        }), 422

    @jwt.unauthorized_loader
    def missing_token_callback(error):
        return jsonify({
            'message': 'Authorization token is missing',
            'error': 'authorization_required'
        }), 401

    # Domain error handlers
    from adaptlearn.errors import AdaptLearnError

    @app.errorhandler(AdaptLearnError)
    def handle_domain_error(error):
        logger.warning(f"{error.error_code}: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(ValidationError)
    def handle_schema_error(error):
        return jsonify({
            'message': 'Invalid request payload',
            'error': 'validation_error',
            'details': error.messages
        }), 400

    # Register blueprints
    from adaptlearn.routes import (
        rules_bp, recommendations_bp,
        prompts_bp, adaptations_bp
    )

    app.register_blueprint(rules_bp, url_prefix='/api/rules')
    app.register_blueprint(recommendations_bp, url_prefix='/api/recommendations')
    app.register_blueprint(prompts_bp, url_prefix='/api/prompts')
    app.register_blueprint(adaptations_bp, url_prefix='/api/adaptations')

    # Scheduler entry points
    from adaptlearn.commands import register_commands
    register_commands(app)

    return app
