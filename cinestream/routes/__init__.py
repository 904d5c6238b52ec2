from flask import current_app, request

from ..errors import BadRequest


def json_body():
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise BadRequest("Request body must be a JSON object")
    return data


def email_service():
    return current_app.extensions["email"]


def media_service():
    return current_app.extensions["media"]


def register_blueprints(app):
    from .comments import bp as comments_bp
    from .favorites import bp as favorites_bp
    from .movies import bp as movies_bp
    from .ratings import bp as ratings_bp
    from .users import auth_bp, users_bp

    app.register_blueprint(auth_bp, url_prefix="/api/auth")
    app.register_blueprint(users_bp, url_prefix="/api/users")
    app.register_blueprint(movies_bp, url_prefix="/api/movies")
    app.register_blueprint(ratings_bp, url_prefix="/api/ratings")
    app.register_blueprint(comments_bp, url_prefix="/api/comments")
    app.register_blueprint(favorites_bp, url_prefix="/api/favorites")
