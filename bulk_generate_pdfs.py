import argparse
import json
import logging
import sys
from pathlib import Path

from api_client import ApiSession, save_document
from config import Config
from errors import DeliveryError, RenderError
from models import payload_from_dict
from pdf_service import render_document, write_pdf


def _load_payloads(path: str) -> list[dict]:
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if isinstance(data, dict):
        data = [data]
    if not isinstance(data, list):
        raise SystemExit("Input must be a JSON object or a list of objects.")
    return [d for d in data if isinstance(d, dict)]


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Bulk generate estimate/bill/invoice PDFs from JSON payloads.")
    parser.add_argument("--input", required=True, help="JSON file with one payload or a list of payloads.")
    parser.add_argument("--kind", type=str, default="", help="Force a document kind (estimate, bill, invoice).")
    parser.add_argument("--exports-dir", type=str, default="", help="Override EXPORTS_DIR.")
    parser.add_argument("--save", action="store_true", help="Also upload each PDF to the backend API.")
    args = parser.parse_args(argv)

    logging.basicConfig(level=Config.LOG_LEVEL)

    exports_dir = (args.exports_dir or "").strip() or Config.EXPORTS_DIR
    Path(exports_dir).mkdir(parents=True, exist_ok=True)

    payloads = _load_payloads(args.input)
    if not payloads:
        print("No payloads found in input.")
        return 0

    session = ApiSession.from_config(Config) if args.save else None

    total = len(payloads)
    generated = 0
    saved = 0
    failed = 0

    for i, raw in enumerate(payloads, start=1):
        try:
            payload = payload_from_dict(raw, kind=args.kind or None)
            doc = render_document(payload)
            path = write_pdf(doc, payload.kind, exports_dir=exports_dir)
            generated += 1
            print(f"[{i}/{total}] DONE  {payload.kind.value} {payload.resolved_number()} -> {path}")

            if session is not None:
                save_document(session, payload, doc.pdf_bytes, doc.totals)
                saved += 1
                print(f"[{i}/{total}] SAVED {payload.kind.value} {payload.resolved_number()}")

        except (ValueError, RenderError, DeliveryError) as e:
            failed += 1
            print(f"[{i}/{total}] FAIL  ({e})")

    print("\nBulk PDF generation complete.")
    print(f"Generated: {generated}")
    if session is not None:
        print(f"Saved:     {saved}")
    print(f"Failed:    {failed}")
    print(f"Exports:   {exports_dir}")
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
