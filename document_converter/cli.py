"""
Message Bundle to Document Bundle conversion from the command line.

Reads a FHIR Message Bundle JSON file, converts it and writes the
Document Bundle JSON file.

Usage:
    python -m document_converter.cli pathology-message-bundle.json
    python -m document_converter.cli in.json -o out.json --no-provenance
"""
import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from document_converter.config import settings
from document_converter.fhir import BundleTransformError, DocumentConverter

DEFAULT_INPUT = "pathology-message-bundle.json"
DEFAULT_OUTPUT = "pathology-document-bundle.json"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Convert a FHIR Message Bundle into a FHIR Document Bundle"
    )
    parser.add_argument("input", nargs="?", default=DEFAULT_INPUT, help="Message Bundle JSON file")
    parser.add_argument("-o", "--output", default=DEFAULT_OUTPUT, help="Document Bundle JSON file")
    provenance = parser.add_mutually_exclusive_group()
    provenance.add_argument(
        "--provenance", dest="include_provenance", action="store_true", default=None,
        help="Append a Provenance entry"
    )
    provenance.add_argument(
        "--no-provenance", dest="include_provenance", action="store_false",
        help="Do not append a Provenance entry"
    )
    parser.add_argument("--indent", type=int, default=2, help="JSON indentation level")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=settings.log_level)

    input_path = Path(args.input)
    try:
        with open(input_path, "r", encoding="utf-8") as f:
            message_bundle = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        print(f"❌ Cannot read Message Bundle {input_path}: {e}", file=sys.stderr)
        return 1

    converter = DocumentConverter(settings)
    try:
        document = converter.transform(message_bundle, include_provenance=args.include_provenance)
    except BundleTransformError as e:
        print(f"❌ Conversion failed ({type(e).__name__}): {e}", file=sys.stderr)
        return 1

    output_path = Path(args.output)
    output_path.write_text(document.json(indent=args.indent), encoding="utf-8")

    print(f"✅ Wrote Document Bundle {document.id} with {len(document.entry)} entries to {output_path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
