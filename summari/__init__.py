import os
from datetime import timedelta

from dotenv import load_dotenv
from flask import Flask, send_from_directory
from flask_sqlalchemy import SQLAlchemy

from .constants import APP_NAME, APP_VERSION, DB_NAME, MAX_UPLOAD_SIZE


db = SQLAlchemy()


def create_app(test_config=None):
    load_dotenv()
    app = Flask(__name__, instance_relative_config=True)
    app.config['SECRET_KEY'] = os.environ.get('SECRET_KEY', 'dev-summari-change-me')
    app.config['SQLALCHEMY_DATABASE_URI'] = os.environ.get('DATABASE_URL', f'sqlite:///{DB_NAME}')
    app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False
    app.config['UPLOAD_FOLDER'] = os.environ.get('UPLOAD_FOLDER', os.path.join(app.instance_path, 'uploads'))
    app.config['MAX_UPLOAD_SIZE'] = int(os.environ.get('MAX_UPLOAD_SIZE', MAX_UPLOAD_SIZE))
    app.config['PUBLIC_APP_URL'] = os.environ.get('PUBLIC_APP_URL', 'http://localhost:5000')
    app.config['SHARE_LINK_MAX_AGE'] = int(os.environ.get('SHARE_LINK_MAX_AGE', timedelta(days=7).total_seconds()))
    app.config['NOTIFY_REQUIRE_DELIVERY'] = os.environ.get('NOTIFY_REQUIRE_DELIVERY', '').lower() in ('1', 'true', 'yes')
    app.config['LOG_LEVEL'] = os.environ.get('LOG_LEVEL', 'INFO')
    if test_config:
        app.config.update(test_config)

    app.logger.setLevel(app.config['LOG_LEVEL'])
    db.init_app(app)

    from .api import api_bp
    app.register_blueprint(api_bp)

    @app.route('/uploads/<path:filename>')
    def uploaded_file(filename):
        return send_from_directory(app.config['UPLOAD_FOLDER'], filename)

    @app.route('/health')
    def health():
        return {'app': APP_NAME, 'version': APP_VERSION, 'status': 'ok'}

    create_database(app)
    return app


def create_database(app):
    with app.app_context():
        from . import models  # noqa: F401  register tables
        db.create_all()
