"""Write the gateway's OpenAPI document to openapi.json at the repo root.

Usage: python -m scripts.export_openapi
"""

import json
from pathlib import Path

from main import app

OPENAPI_PATH = Path(__file__).resolve().parent.parent / "openapi.json"


def main():
    document = app.openapi()
    OPENAPI_PATH.write_text(json.dumps(document, indent=2, sort_keys=False) + "\n")
    print(f"Wrote {len(document['paths'])} paths to {OPENAPI_PATH}")


if __name__ == "__main__":
    main()
