# process_local_entries.py
import asyncio
import json
import os
import sys
import time
from datetime import datetime, timezone

from guttrack.ai_engine import is_ai_available
from guttrack.multi_parser import AnalysisError, parse_multi_category_entry

ENTRIES_FILE = "entries.txt"


async def main(path: str):
    if not os.path.exists(path):
        print(f"❌ Error: File '{path}' not found.")
        print("Please create it with one free-text description per line.")
        return 1

    if not is_ai_available():
        print("❌ Error: OPENROUTER_API_KEY is not set.")
        return 1

    with open(path, encoding="utf-8") as f:
        descriptions = [line.strip() for line in f if line.strip() and not line.startswith("#")]

    if not descriptions:
        print(f"⚠️  No descriptions found in '{path}'.")
        return 0

    print(f"🔎 Found {len(descriptions)} descriptions. Starting multi-category parsing...\n")
    print("=" * 60)

    base_timestamp = datetime.now(timezone.utc)
    failures = 0
    for i, description in enumerate(descriptions, 1):
        print(f"[{i}/{len(descriptions)}] {description}")
        start_time = time.time()
        try:
            extraction = await parse_multi_category_entry(description, base_timestamp)
        except AnalysisError as e:
            failures += 1
            print(f"❌ Failed: {e}")
        else:
            print(f"✅ Finished in {time.time() - start_time:.2f}s -> {', '.join(extraction.drafts) or 'nothing to log'}")
            print(json.dumps(extraction.model_dump(mode="json", by_alias=True), indent=2))
        print("-" * 60)

    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main(sys.argv[1] if len(sys.argv) > 1 else ENTRIES_FILE)))
