import json
import os
import sys
import time
from pathlib import Path

import requests

# Support running as a module (`python -m examples.upload_pdf_client`)
# or directly (`python examples/upload_pdf_client.py`).
EXAMPLES_DIR = Path(__file__).resolve().parent
if str(EXAMPLES_DIR.parent) not in sys.path:
    sys.path.append(str(EXAMPLES_DIR.parent))

from examples.util.net import build_status_url, build_ws_url, normalize_base_url
from exam_import.workflow.utils.settings import load_env

TERMINAL_STATUSES = {"ready_for_review", "failed"}


def main() -> int:
    load_env()

    base_url = os.getenv("IMPORT_BASE_URL", "http://localhost:8080")
    pdf_path = Path(os.getenv("IMPORT_FILE_PATH", "pdfs/sample-exam.pdf"))
    source = os.getenv("IMPORT_SOURCE", "")
    year = os.getenv("IMPORT_YEAR", "")
    tier = os.getenv("IMPORT_DEFAULT_TIER", "")
    poll_seconds = float(os.getenv("IMPORT_POLL_SECONDS", "2"))

    if not pdf_path.exists():
        print(f"File not found: {pdf_path}")
        return 1

    url = f"{normalize_base_url(base_url)}/import/upload"
    with pdf_path.open("rb") as handle:
        response = requests.post(
            url,
            files={"file": (pdf_path.name, handle, "application/pdf")},
            data={"source": source, "year": year, "defaultTier": tier},
            timeout=60,
        )
    print(f"POST {url} -> {response.status_code}")
    data = response.json()
    print(json.dumps(data, indent=2))
    if not response.ok:
        return 1

    import_id = data["importId"]
    print("Progress Websocket:")
    print(build_ws_url(base_url, import_id))

    status_url = build_status_url(base_url, import_id)
    while True:
        status = requests.get(status_url, timeout=30).json()
        print(f"status={status.get('status')} progress={status.get('progress')}")
        if status.get("status") in TERMINAL_STATUSES:
            break
        time.sleep(poll_seconds)

    if status.get("status") == "failed":
        print(f"Import failed: {status.get('errorMessage')}")
        return 1

    questions = requests.post(status_url, json={"action": "get_questions"}, timeout=30).json()
    for item in questions.get("questions", []):
        flag = " (needs review)" if item.get("status") == "needs_edit" else ""
        print(f"- [{item.get('suggestedTopic')} / tier {item.get('suggestedTier')}] {item.get('title')}{flag}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
