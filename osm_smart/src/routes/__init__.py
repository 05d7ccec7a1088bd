"""
Routes package for the OSM Smart API
Blueprint-based modular route organization
"""


def register_blueprints(app):
    """
    Register all route blueprints with the Quart app

    Admin routes (health, cache purge) first, then the API routes.
    """
    from .admin import register as register_admin
    from .tile import register as register_tile
    from .gemini import register as register_gemini
    from .geocode import register as register_geocode
    from .tags import register as register_tags

    register_admin(app)
    register_tile(app)
    register_gemini(app)
    register_geocode(app)
    register_tags(app)
