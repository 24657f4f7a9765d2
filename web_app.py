#!/usr/bin/env python3
"""
Flask trigger surface for the feed checker.
Endpoints: /status (liveness text), /check (manual run), /api/health (JSON).
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from dotenv import load_dotenv
from flask import Flask, jsonify
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

from blogwatch.config import Config
from blogwatch.runner import FeedChecker, build_checker

logger = logging.getLogger(__name__)


def create_app(checker: Optional[FeedChecker] = None) -> Flask:
    app = Flask(__name__)

    if checker is None:
        checker = build_checker(Config.from_env())
    app.config['FEED_CHECKER'] = checker

    limiter = Limiter(
        key_func=get_remote_address,
        default_limits=["1000 per day", "100 per hour"],
        storage_uri="memory://",
    )
    limiter.init_app(app)

    @app.route('/status')
    @limiter.exempt
    def status():
        return 'RSS checker is running', 200

    @app.route('/api/health')
    @limiter.exempt
    def health_check():
        """API health check endpoint"""
        return jsonify({
            'status': 'healthy',
            'timestamp': datetime.now().isoformat(),
        })

    @app.route('/check', methods=['GET', 'POST'])
    @limiter.limit("10 per hour")
    def manual_check():
        """Run a feed check now and report success or failure"""
        try:
            report = app.config['FEED_CHECKER'].run_check()
        except Exception as e:
            logger.error(f"Manual feed check crashed: {e}", exc_info=True)
            return jsonify({'success': False, 'status': 'failed'}), 500

        body = {'success': report.success, 'status': report.status}
        if report.skipped:
            return jsonify(body), 409
        if not report.success:
            return jsonify(body), 500
        body['new_entries'] = len(report.new_entries)
        return jsonify(body), 200

    @app.route('/')
    @limiter.exempt
    def index():
        return 'Hello from RSS Checker!', 200

    return app


if __name__ == '__main__':
    load_dotenv()
    logging.basicConfig(level=logging.INFO)
    config = Config.from_env()
    create_app(build_checker(config)).run(host='0.0.0.0', port=config.web_port)
