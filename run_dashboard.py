#!/usr/bin/env python3
"""
Plex Tautulli Dashboard - API server entry point

Run this script to start the backend:
    python3 run_dashboard.py

The frontend talks to it on http://127.0.0.1:3006/api
"""

import logging
import os

from dotenv import load_dotenv

load_dotenv()

from flask_app import create_app  # noqa: E402  (configuration is read from the environment at import)

logger = logging.getLogger(__name__)

app = create_app(os.getenv('FLASK_ENV', 'production'))

if __name__ == '__main__':
    port = int(os.getenv('PORT', 3006))

    logger.info("=" * 60)
    logger.info("Plex Tautulli Dashboard API")
    logger.info("Listening on http://0.0.0.0:%d", port)
    logger.info("Config directory: %s", app.config['CONFIG_DIR'])
    logger.info("=" * 60)

    app.run(debug=app.config.get('DEBUG', False), host='0.0.0.0', port=port, threaded=True)
