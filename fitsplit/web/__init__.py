from __future__ import annotations

import logging

from flask import Flask, jsonify

from fitsplit.config import Config
from fitsplit.errors import FitSplitError


def create_app(config: Config | None = None) -> Flask:
    if config is None:
        config = Config.from_env()

    app = Flask(__name__)
    app.config["MAX_CONTENT_LENGTH"] = config.max_upload_mb * 1024 * 1024
    app.config["config"] = config

    from fitsplit.web.routes import bp
    app.register_blueprint(bp)

    @app.errorhandler(FitSplitError)
    def _fitsplit_error(e: FitSplitError):
        return jsonify({"error": str(e), "type": type(e).__name__}), 400

    return app


def main() -> None:
    config = Config.from_env()
    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app = create_app(config)
    app.run(host="0.0.0.0", port=config.flask_port, debug=config.flask_debug)


if __name__ == "__main__":
    main()
