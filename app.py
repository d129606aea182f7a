#!/usr/bin/env python3
"""
Storefront API - Subscription entitlements and Stripe billing sync
PostgreSQL, one connection per request
"""

import os
import sys

import psycopg2
import psycopg2.extras
from flask import Flask, jsonify, g
from flask_cors import CORS

from subscription.routes import create_subscription_blueprint

# Database URL from environment
DATABASE_URL = os.environ.get('DATABASE_URL')

# Startup logging for debugging
print(f"[STARTUP] DATABASE_URL set: {bool(DATABASE_URL)}", file=sys.stderr)
if DATABASE_URL:
    # Log sanitized host only
    from urllib.parse import urlparse
    parsed = urlparse(DATABASE_URL)
    print(f"[STARTUP] Database host: {parsed.hostname}:{parsed.port}", file=sys.stderr)


def get_db():
    """Get database connection for current request context."""
    if 'db' not in g:
        if not DATABASE_URL:
            raise RuntimeError("DATABASE_URL environment variable not set")
        # Add connection timeout to prevent hanging
        g.db = psycopg2.connect(DATABASE_URL, connect_timeout=10)
        g.db.autocommit = False
    return g.db


def get_cursor():
    """Get a cursor with dict-like row access."""
    db = get_db()
    return db.cursor(cursor_factory=psycopg2.extras.RealDictCursor)


def close_db(exception):
    """Close database connection at end of request."""
    db = g.pop('db', None)
    if db is not None:
        db.close()


def create_app(**collaborators):
    """
    Build the Flask app.

    Keyword arguments are passed to create_subscription_blueprint to swap
    out accessors (catalog, stores, usage, correlator, verifier,
    retrieve_subscription).
    """
    app = Flask(__name__)
    CORS(app)
    app.teardown_appcontext(close_db)

    app.register_blueprint(create_subscription_blueprint(get_db, get_cursor, **collaborators))

    @app.route('/health', methods=['GET'])
    def health():
        return jsonify({'status': 'ok', 'database_configured': bool(DATABASE_URL)})

    return app


if __name__ == '__main__':
    port = int(os.environ.get('PORT', 8080))
    create_app().run(host='0.0.0.0', port=port, debug=False, threaded=True)
