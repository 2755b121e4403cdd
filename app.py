"""WSGI entry point for the game enrichment endpoint."""

from __future__ import annotations

import os

from web.app_factory import create_app

app = create_app()


if __name__ == '__main__':
    app.run(
        host=os.environ.get('FLASK_RUN_HOST', '127.0.0.1'),
        port=int(os.environ.get('FLASK_RUN_PORT', '8000')),
        debug=os.environ.get('FLASK_DEBUG', '').lower() in {'1', 'true', 'yes', 'on'},
    )
