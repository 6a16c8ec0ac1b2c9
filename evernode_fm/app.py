"""Flask application factory.

The configuration is built once (``FileManagerConfig.from_env()`` by default)
and handed to ``FileManager``; nothing below reads globals.

API access is guarded by a shared key sent as the ``X-Auth`` header or the
``key`` query parameter. The key is kept only as a werkzeug password hash.
"""

from __future__ import annotations

import os
import time
from typing import Any, Optional

from flask import Flask, g, jsonify, redirect, request
from werkzeug.security import check_password_hash, generate_password_hash

from .routes_files import create_files_blueprint
from .services.config import FileManagerConfig
from .services.file_manager import FileManager
from .services.logging_setup import access_enabled, access_logger, core_log, setup_logging


# reachable without the shared key
OPEN_ENDPOINTS = {"files.api_test"}


def create_app(config: Optional[FileManagerConfig] = None) -> Flask:
    config = config or FileManagerConfig.from_env()
    if config.log_dir:
        setup_logging(config.log_dir)

    manager = FileManager(config)
    manager.ensure_root()

    app = Flask(__name__)
    app.config["FILE_MANAGER"] = manager
    # multipart bodies for a full batch of uploads plus form overhead
    app.config["MAX_CONTENT_LENGTH"] = config.max_upload_bytes * max(1, config.max_upload_files) + 1024 * 1024

    password_hash = generate_password_hash(config.password) if config.password else None

    def _is_authorized() -> bool:
        supplied = request.headers.get("X-Auth") or request.args.get("key") or ""
        return bool(supplied) and check_password_hash(password_hash, supplied)

    @app.before_request
    def _auth_guard() -> Any:
        g._efm_t0 = time.time()
        if not request.path.startswith(config.base_path + "/api/"):
            return None
        if request.endpoint in OPEN_ENDPOINTS:
            return None
        if password_hash is None:
            return jsonify({"ok": False, "error": "not_configured"}), 428
        if not _is_authorized():
            return jsonify({"ok": False, "error": "unauthorized"}), 401
        return None

    @app.after_request
    def _access_log_after_request(response: Any) -> Any:
        if not access_enabled():
            return response
        try:
            client = request.headers.get("X-Forwarded-For") or request.remote_addr or ""
            dt_ms = int((time.time() - float(getattr(g, "_efm_t0", time.time()))) * 1000.0)
            access_logger().info(f"{client} {request.method} {request.path} -> {response.status_code} ({dt_ms}ms)")
        except Exception:
            # Logging must never affect response
            pass
        return response

    app.register_blueprint(create_files_blueprint(manager), url_prefix=config.base_path or None)

    if config.base_path:
        @app.get("/")
        def index() -> Any:
            return redirect(config.base_path + "/api/test")

    core_log(
        "info",
        "evernode-fm init",
        pid=os.getpid(),
        root=config.root,
        base_path=config.base_path or "/",
        auth=bool(password_hash),
    )
    return app
