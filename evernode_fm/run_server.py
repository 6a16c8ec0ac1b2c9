"""Serve the file manager with gevent's WSGI server."""

from __future__ import annotations

from gevent import monkey

monkey.patch_all()

from gevent import pywsgi  # noqa: E402

from .app import create_app  # noqa: E402
from .services.config import FileManagerConfig  # noqa: E402
from .services.logging_setup import core_log  # noqa: E402


def main() -> None:
    config = FileManagerConfig.from_env()
    app = create_app(config)
    server = pywsgi.WSGIServer((config.host, config.port), app)
    core_log("info", "evernode-fm listening", host=config.host, port=config.port, root=config.root)
    if not config.password:
        core_log("warning", "no PASSWORD set; API answers 428 until one is configured")
    server.serve_forever()


if __name__ == "__main__":
    main()
