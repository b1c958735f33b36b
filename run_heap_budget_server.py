# run_heap_budget_server.py
import argparse
import logging
import time
import requests
import uvicorn

from heap_budget.advisor.errors import AdvisorError, ProfileCollectionError
from heap_budget.api.server import PROFILES_DIR
from heap_budget.snapshot.collector import collect_memory_profile
from heap_budget.snapshot.io import save_profile_to_file

# Настраиваем логирование для лаунчера
logging.basicConfig(level=logging.INFO)
log = logging.getLogger("launcher")

def capture_profile(target: str, lookback: str | None):
    """
    Снимает профиль namespace/workload из метрик и кладёт его в profiles/,
    сервер подхватит его на старте.
    """
    namespace, _, workload = target.partition("/")
    if not workload:
        log.error(f"Expected namespace/workload, got {target!r}")
        return

    log.info(f"Capturing profile for {namespace}/{workload}...")
    try:
        profile = collect_memory_profile(namespace, workload, lookback=lookback)

        PROFILES_DIR.mkdir(parents=True, exist_ok=True)
        file_path = PROFILES_DIR / f"{namespace}-{workload}-{int(time.time())}.json"

        save_profile_to_file(profile, file_path)
        log.info(f"Profile successfully saved to: {file_path}")

    except (AdvisorError, ProfileCollectionError, requests.RequestException, OSError) as e:
        log.error(f"Failed to capture profile: {e}")
        # Не прерываем выполнение, чтобы сервер мог запуститься даже если сбор упал

if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Heap Budget Server Launcher")

    parser.add_argument(
        "--capture",
        metavar="NAMESPACE/WORKLOAD",
        help="Capture a memory profile from metrics before startup"
    )
    parser.add_argument("--lookback", help="Look-back window for --capture, e.g. 7d")

    # Стандартные настройки uvicorn
    parser.add_argument("--host", default="0.0.0.0", help="Bind host")
    parser.add_argument("--port", type=int, default=8000, help="Bind port")
    parser.add_argument("--no-reload", action="store_true", help="Disable auto-reload")

    args = parser.parse_args()

    if args.capture:
        capture_profile(args.capture, args.lookback)

    uvicorn.run(
        "heap_budget.api.server:app",
        host=args.host,
        port=args.port,
        reload=not args.no_reload,
    )
