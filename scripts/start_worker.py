"""Start the video transcode worker.

Usage:
    python -m scripts.start_worker --config my_project.video:options
    python -m scripts.start_worker --concurrency 2 --loglevel debug

The options module defaults to VIDEO_WORKER_CONFIG (or
PAYLOAD_VIDEO_WORKER_CONFIG).
"""

import argparse
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv
load_dotenv()

from video_processor.core.config import Settings
from video_processor.modules.transcoding.options import load_options
from video_processor.worker import create_worker


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the video transcode worker.")
    parser.add_argument(
        "--config",
        help="Options import path (module:attribute or a .py file)",
    )
    parser.add_argument("--concurrency", type=int, help="Jobs processed in parallel")
    parser.add_argument("--queue", help="Queue name to consume")
    parser.add_argument("--loglevel", default="info", help="Celery log level")
    return parser.parse_args(argv)


def main(argv=None) -> None:
    args = parse_args(argv)
    settings = Settings()

    config_path = args.config or settings.VIDEO_WORKER_CONFIG
    if not config_path:
        print("VIDEO_WORKER_CONFIG must point to a module exporting VideoProcessorOptions.", file=sys.stderr)
        sys.exit(1)

    options = load_options(config_path)
    if args.queue:
        options.queue.name = args.queue

    app = create_worker(options, settings, concurrency=args.concurrency)
    queue_name = options.queue.name or settings.QUEUE_NAME

    print(f"[video-processor] Worker listening on queue {queue_name}")
    app.worker_main(
        argv=[
            "worker",
            f"--loglevel={args.loglevel}",
            f"--concurrency={app.conf.worker_concurrency}",
            f"--queues={queue_name}",
        ]
    )


if __name__ == "__main__":
    main()
