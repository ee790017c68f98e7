from typing import Optional

from flask import Flask

from .config import Settings
from .controllers.auth import bp as auth_bp
from .controllers.bookings import bp as bookings_bp
from .controllers.cars import bp as cars_bp
from .controllers.views import bp as views_bp
from .logging import setup_logging
from .services import Services, build_services
from .utils.decorators import guard_request


def create_app(settings: Optional[Settings] = None, services: Optional[Services] = None):
    settings = settings or Settings()
    setup_logging(settings.debug)

    app = Flask(__name__)
    app.config["SECRET_KEY"] = settings.secret_key
    app.extensions["carrental"] = services or build_services(settings)
    app.before_request(guard_request)

    app.register_blueprint(auth_bp)
    app.register_blueprint(views_bp)
    app.register_blueprint(cars_bp)
    app.register_blueprint(bookings_bp)

    return app
