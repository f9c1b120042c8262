"""
zessionizer Status API - read-only view of the ranked index over HTTP.

Endpoints:
    GET  /health                 liveness + index size
    GET  /projects?q=&mode=&limit=   ranked (and highlighted) projects
    POST /rank/record            {"path": ..., "timestamp": ...} access event

Requests are served on Flask's threads, so every read first drains the
worker's events under one lock, then works on the resulting snapshot.
"""

import logging
import threading
import time
from typing import Optional

from flask import Flask, jsonify, request
from pydantic import BaseModel, Field, ValidationError, field_validator

from ..app.plugin import Plugin
from ..app.sessions import session_name
from ..index.registry import canonical
from ..ranking.matcher import rank
from ..ranking.scorer import time_ago
from ..worker.messages import RecordAccess

log = logging.getLogger(__name__)

app = Flask(__name__)

DEFAULT_LIMIT = 20
MAX_LIMIT = 500

plugin: Optional[Plugin] = None
_lock = threading.Lock()


class RecordRequest(BaseModel):
    path: str = Field(min_length=1)
    timestamp: Optional[float] = None

    @field_validator("timestamp")
    @classmethod
    def _not_negative(cls, value: Optional[float]) -> Optional[float]:
        if value is not None and value < 0:
            raise ValueError("timestamp must not be negative")
        return value


def bind(bound: Plugin) -> Flask:
    """Serve `bound` from the module app."""
    global plugin
    plugin = bound
    return app


def _refresh():
    with _lock:
        plugin.tick()
        return plugin.state.snapshot, plugin.state.sessions


def _limit(raw) -> int:
    try:
        limit = int(raw)
    except (TypeError, ValueError):
        return DEFAULT_LIMIT
    return max(1, min(limit, MAX_LIMIT))


# ============================================================================
# API Endpoints
# ============================================================================

@app.route('/health')
def health():
    snapshot, sessions = _refresh()
    return jsonify({
        'status': 'ok',
        'service': 'zessionizer',
        'projects': len(snapshot),
        'version': snapshot.version,
        'sessions': len(sessions.names),
        'scanning': sorted(plugin.scanning),
    })


@app.route('/projects')
def projects():
    start = time.time()
    q = request.args.get('q', '')
    mode = request.args.get('mode', 'projects')
    limit = _limit(request.args.get('limit', DEFAULT_LIMIT))

    if mode not in ('projects', 'sessions'):
        return jsonify({'error': f'unknown mode: {mode}'}), 400

    snapshot, sessions = _refresh()
    candidates = snapshot.projects
    if mode == 'sessions':
        candidates = [p for p in candidates if session_name(p) in sessions.names]

    now = time.time()
    rows = rank(candidates, q, plugin.state.scorer, now, search=bool(q.strip()))
    results = []
    for row in rows[:limit]:
        project = row.project
        session = session_name(project)
        results.append({
            'name': project.name,
            'path': project.path,
            'marker': project.marker_kind.value,
            'frequency': project.frequency,
            'last_accessed': project.last_accessed,
            'ago': time_ago(project.last_accessed, now),
            'score': round(row.frecency, 4),
            'match': round(row.match_score, 4),
            'spans': [list(span) for span in row.spans],
            'session': session,
            'active': session in sessions.names,
            'current': session == sessions.current,
        })

    return jsonify({
        'results': results,
        'total': len(rows),
        'mode': mode,
        'ms': (time.time() - start) * 1000,
    })


@app.route('/rank/record', methods=['POST'])
def record():
    """Record an access for a known project."""
    try:
        body = RecordRequest.model_validate(request.get_json(silent=True) or {})
    except ValidationError as e:
        errors = e.errors(include_url=False, include_context=False, include_input=False)
        return jsonify({'status': 'error', 'message': errors}), 400

    path = canonical(body.path)
    snapshot, _ = _refresh()
    if snapshot.get(path) is None:
        return jsonify({'status': 'error', 'message': f'unknown project: {path}'}), 404

    timestamp = body.timestamp if body.timestamp is not None else time.time()
    plugin.worker.post(RecordAccess(path, timestamp))
    log.debug("recorded access to %s via api", path)
    return jsonify({'status': 'ok', 'path': path, 'timestamp': timestamp})


# ============================================================================
# Main
# ============================================================================

def serve(bound: Plugin, port: int, host: str = '127.0.0.1'):
    bind(bound)
    log.info("Starting zessionizer status API on %s:%d", host, port)
    app.run(host=host, port=port, threaded=True)
