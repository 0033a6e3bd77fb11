# app.py
import io
import logging

from flask import Flask, request, jsonify, send_file, abort

from api_client import ApiSession, save_document
from config import Config
from errors import DeliveryError, RenderError
from models import DocumentKind, payload_from_dict, compute_totals
from pdf_service import render_document

logger = logging.getLogger(__name__)


# -----------------------------
# Helpers
# -----------------------------
def _kind_or_404(kind: str) -> DocumentKind:
    try:
        return DocumentKind.parse(kind)
    except ValueError:
        abort(404, description=f"Unknown document kind: {kind}")


def _payload_from_request(kind: DocumentKind):
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        abort(400, description="Expected a JSON object body.")
    return payload_from_dict(data, kind=kind)


def _bearer_token() -> str | None:
    auth = (request.headers.get("Authorization") or "").strip()
    if auth.lower().startswith("bearer "):
        return auth[7:].strip() or None
    return None


def _pdf_response(pdf_bytes: bytes, filename: str, as_attachment: bool):
    return send_file(
        io.BytesIO(pdf_bytes),
        as_attachment=as_attachment,
        download_name=filename,
        mimetype="application/pdf",
    )


# -----------------------------
# App factory
# -----------------------------
def create_app(config=None):
    config = config or Config

    app = Flask(__name__)
    app.config.from_object(config)

    logging.basicConfig(
        level=getattr(config, "LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    @app.errorhandler(400)
    def bad_request(err):
        return jsonify({"error": getattr(err, "description", "Bad request")}), 400

    @app.errorhandler(404)
    def not_found(err):
        return jsonify({"error": getattr(err, "description", "Not found")}), 404

    @app.errorhandler(RenderError)
    def render_failed(err):
        return jsonify({"error": str(err), "stage": "render"}), 500

    @app.errorhandler(DeliveryError)
    def delivery_failed(err):
        body = {"error": str(err), "stage": "delivery"}
        if err.status_code is not None:
            body["backendStatus"] = err.status_code
        return jsonify(body), 502

    @app.route("/health")
    def health():
        return jsonify({"status": "ok"})

    # -----------------------------
    # Totals preview (no PDF)
    # -----------------------------
    @app.route("/documents/<kind>/totals", methods=["POST"])
    def document_totals(kind):
        payload = _payload_from_request(_kind_or_404(kind))
        return jsonify(compute_totals(payload).as_dict())

    # -----------------------------
    # PDF routes
    # -----------------------------
    @app.route("/documents/<kind>/pdf", methods=["POST"])
    def document_pdf_download(kind):
        payload = _payload_from_request(_kind_or_404(kind))
        doc = render_document(payload, config)
        return _pdf_response(doc.pdf_bytes, doc.filename, as_attachment=True)

    @app.route("/documents/<kind>/preview", methods=["POST"])
    def document_pdf_preview(kind):
        payload = _payload_from_request(_kind_or_404(kind))
        doc = render_document(payload, config)
        return _pdf_response(doc.pdf_bytes, doc.filename, as_attachment=False)

    @app.route("/documents/<kind>/save", methods=["POST"])
    def document_save(kind):
        payload = _payload_from_request(_kind_or_404(kind))
        doc = render_document(payload, config)

        session = ApiSession.from_config(config, token=_bearer_token())
        result = save_document(session, payload, doc.pdf_bytes, doc.totals)
        return jsonify({
            "filename": doc.filename,
            "totals": doc.totals.as_dict(),
            "saved": result,
        }), 201

    return app


if __name__ == "__main__":
    app = create_app()
    app.run(debug=True)
