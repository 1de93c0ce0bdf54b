"""Record a short webcam clip of your dog and submit it to the Pawsight API.

Usage:
    python scripts/record_clip.py --breed "Golden Retriever" --age 5
    (press Enter to stop early; recording stops on its own after 15 seconds)
"""

import argparse
import os
import sys
import tempfile
import threading
import time
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from dotenv import load_dotenv
load_dotenv()

import requests

from app.errors import CaptureBusy, InputRejected, PermissionDenied
from app.media.capture import Camera, ClipRecorder

API = os.getenv("PAWSIGHT_API_URL", "http://localhost:8000")
POLL_SECONDS = 1.0
TIMEOUT = 30


def record(device: int, output: Path) -> Path:
    with Camera(device) as camera:
        recorder = ClipRecorder(camera)
        threading.Thread(target=lambda: (input(), recorder.stop()), daemon=True).start()
        print(f"🎥 Recording (max {recorder.max_seconds:g}s), press Enter to stop")
        clip = recorder.record(output)
    print(f"✅ Recorded {clip.duration_seconds:.1f}s ({clip.frame_count} frames)")
    return clip.path


def submit(path: Path, breed: str, age: float) -> dict:
    with open(path, "rb") as fh:
        resp = requests.post(
            f"{API}/analyses",
            files={"file": (path.name, fh, "video/mp4")},
            data={"breed": breed, "age_years": str(age)},
            timeout=TIMEOUT,
        )
    resp.raise_for_status()
    return resp.json()


def wait_for(attempt_id: str) -> dict:
    last = None
    while True:
        status = requests.get(f"{API}/analyses/{attempt_id}", timeout=TIMEOUT).json()
        progress = (status["state"], status.get("upload_progress"), status["analysis_progress"])
        if progress != last:
            print(f"   {status['state']:<10} upload={status.get('upload_progress')} analysis={status['analysis_progress']}%")
            last = progress
        if status["state"] in ("complete", "error"):
            return status
        time.sleep(POLL_SECONDS)


def main():
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--breed", required=True)
    parser.add_argument("--age", type=float, required=True, help="age in years")
    parser.add_argument("--device", type=int, default=0, help="camera index")
    args = parser.parse_args()

    output = Path(tempfile.gettempdir()) / f"pawsight_{int(time.time())}.mp4"
    try:
        path = record(args.device, output)
    except (PermissionDenied, InputRejected, CaptureBusy) as exc:
        print(f"❌ {exc.user_message}")
        sys.exit(1)

    try:
        attempt = submit(path, args.breed, args.age)
    finally:
        path.unlink(missing_ok=True)

    status = wait_for(attempt["attempt_id"])
    if status["state"] == "error":
        print(f"❌ {status['error_message']}")
        sys.exit(1)

    report = requests.get(f"{API}/reports/{status['report_id']}", timeout=TIMEOUT).json()
    print(f"\n🐶 {report['emotion']} ({report['confidence']}%), urgency {report['health']['urgency']}")
    print(f"   \"{report['translation']}\"")
    for tip in report["tips"]:
        print(f"   • {tip}")


if __name__ == "__main__":
    main()
