#!/usr/bin/env python3
"""
Read-only web status API for zfs-autosnap
"""

from flask import Flask, jsonify
from flask_httpauth import HTTPBasicAuth
from werkzeug.security import generate_password_hash, check_password_hash

from ..common.errors import StoreError
from ..common.utils import get_logger
from ..core.snapshot import utc_now
from ..core.syntax import format_policy, format_rule
from ..store.zfs import build_store

logger = get_logger(__name__)


def seconds_until(volume, now):
    until = volume.until_next_snapshot(now)
    return int(until.total_seconds()) if until is not None else None


def volume_summary(volume, now):
    judgement = volume.judge()
    return {
        'name': volume.name,
        'policy': format_policy(volume.policy),
        'snapshots': len(volume.snapshots),
        'next_snapshot_in': seconds_until(volume, now),
        'rejected': [s.name for s in judgement.rejected_newest_first()],
    }


def create_app(store, password=None):
    """Flask app serving the state of `store` behind basic auth"""
    app = Flask(__name__)
    auth = HTTPBasicAuth()

    if not password:
        password = "admin"
        logger.warning("Default web password used ('admin'). Set 'web_password' in the configuration")
    users = {"admin": generate_password_hash(password)}

    @auth.verify_password
    def verify_password(username, password):
        if username in users and check_password_hash(users.get(username), password):
            return username
        return None

    @app.errorhandler(StoreError)
    def store_error(e):
        logger.error(f"Store error while serving request: {e}")
        return jsonify({'success': False, 'error': str(e)}), 502

    @app.route('/api/status')
    @auth.login_required
    def api_status():
        """Every configured volume with its next snapshot and expired snapshots"""
        now = utc_now()
        volumes = store.list_volumes()
        return jsonify({
            'success': True,
            'volumes': [volume_summary(v, now) for v in volumes],
        })

    @app.route('/api/volumes/<path:name>')
    @auth.login_required
    def api_volume(name):
        now = utc_now()
        volume = next((v for v in store.list_volumes() if v.name == name), None)
        if volume is None:
            return jsonify({'success': False, 'error': f"Unknown volume: {name}"}), 404

        judgement = volume.judge()
        detail = volume_summary(volume, now)
        detail['snapshot_list'] = [
            {
                'name': s.name,
                'created': s.created.strftime('%Y-%m-%dT%H:%M:%SZ'),
                'used': s.used,
                'retained_by': [format_rule(r) for r in sorted(judgement.retained.get(s, ()))],
            }
            for s in volume.snapshots
        ]
        return jsonify({'success': True, 'volume': detail})

    return app


def serve(config, host=None, port=None):
    """Runs the status API with the store described by `config`"""
    store = build_store(config)
    app = create_app(store, config.get('web_password'))
    try:
        app.run(host=host or config.get('web_host', '127.0.0.1'),
                port=port or config.get('web_port', 8080))
    finally:
        store.close()
