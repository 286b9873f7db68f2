from __future__ import annotations

import io
import logging
from pathlib import Path

from flask import Blueprint, current_app, jsonify, request, send_file

from fitsplit.config import Config
from fitsplit.pipeline import (
    parse_int_list,
    parse_name_list,
    plan_segments,
    split_bytes,
    start_session,
)
from fitsplit.report import build_report

log = logging.getLogger(__name__)

bp = Blueprint("api", __name__, url_prefix="/api")


def _config() -> Config:
    return current_app.config["config"]


def _uploaded_bytes():
    upload = request.files.get("file")
    if upload is None or not upload.filename:
        return None, None
    return upload.read(), upload.filename


def _missing_file():
    return jsonify({"error": "No FIT file uploaded (form field 'file')"}), 400


@bp.route("/inspect", methods=["POST"])
def inspect():
    data, filename = _uploaded_bytes()
    if data is None:
        return _missing_file()

    detect = request.form.get("detect", type=int)
    session = start_session(data, _config())
    suggested = session.detect(detect) if detect else None
    log.info("Inspected %s: %d samples", filename, len(session.model))
    return jsonify(build_report(session.model, session.segments, suggested_cuts=suggested))


@bp.route("/split", methods=["POST"])
def split():
    data, filename = _uploaded_bytes()
    if data is None:
        return _missing_file()

    config = _config()
    session = start_session(data, config)
    try:
        session = plan_segments(
            session,
            cuts=parse_int_list(request.form.get("cuts")),
            preset=request.form.get("preset") or None,
            auto=request.form.get("auto", type=int),
            disciplines=parse_name_list(request.form.get("disciplines")),
        )
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    fit_bytes = split_bytes(session, config)
    download_name = config.output_path_for(Path(filename)).name
    log.info("Split %s into %d sessions", filename, len(session.segments))
    return send_file(
        io.BytesIO(fit_bytes),
        mimetype="application/octet-stream",
        as_attachment=True,
        download_name=download_name,
    )
