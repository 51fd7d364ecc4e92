"""JSON API blueprints, registered under /api by create_app"""
