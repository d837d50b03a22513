"""
Serve the portal API with uvicorn.

    python run.py                   # API_HOST / API_PORT from the environment
    python run.py --reload          # auto-reload while developing
    python run.py --no-scheduler    # API only, e.g. next to a separate worker

Every worker process runs its own scheduler; the queues are locked in
MongoDB, so that is safe.
"""
import argparse
import os
import uvicorn

from portal.config.settings import settings


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Operations portal API server")
    parser.add_argument("--host", default=settings.api_host, help=f"bind address (default: {settings.api_host})")
    parser.add_argument("--port", type=int, default=settings.api_port, help=f"bind port (default: {settings.api_port})")
    parser.add_argument("--reload", action="store_true", help="restart on code changes")
    parser.add_argument("--workers", type=int, default=1, help="worker processes, ignored with --reload")
    parser.add_argument("--no-scheduler", action="store_true", help="do not run background jobs in this server")
    return parser.parse_args(argv)


def main(argv=None) -> None:
    args = parse_args(argv)
    if args.no_scheduler:
        # Read again by the settings of every worker process
        os.environ["SCHEDULER_ENABLED"] = "false"
    if args.reload and settings.is_production:
        print("warning: --reload in a production environment")

    workers = 1 if args.reload else args.workers
    print(f"Portal API on http://{args.host}:{args.port} ({settings.environment}, {workers} worker(s))")

    uvicorn.run("portal.main:app", host=args.host, port=args.port, reload=args.reload, workers=workers)


if __name__ == "__main__":
    main()
