#!/usr/bin/env python
"""
Server Entry Point

Usage:
    Development:  python run_server.py --dev
    Production:   python run_server.py

    Or with Gunicorn:
    gunicorn retail_analytics.main:app -c gunicorn.conf.py

Ingestion batches are serialized inside one process, so run a single worker
unless uploads go through a dedicated instance.
"""

import argparse
import os
import subprocess


def run_dev_server(port: int):
    """Run development server with auto-reload."""
    import uvicorn

    uvicorn.run(
        "retail_analytics.main:app",
        host="0.0.0.0",
        port=port,
        reload=True,
        reload_dirs=["retail_analytics"],
        log_level="debug",
    )


def run_prod_server(port: int):
    """Run production server with Uvicorn directly."""
    import uvicorn

    uvicorn.run(
        "retail_analytics.main:app",
        host="0.0.0.0",
        port=port,
        workers=int(os.getenv("WORKERS", 1)),
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
        proxy_headers=True,
        forwarded_allow_ips="*",
        server_header=False,
    )


def run_gunicorn():
    """Run with Gunicorn."""
    subprocess.run(["gunicorn", "retail_analytics.main:app", "-c", "gunicorn.conf.py"])


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Retail Sales Analytics API Server")
    parser.add_argument("--dev", action="store_true", help="Run in development mode with auto-reload")
    parser.add_argument("--gunicorn", action="store_true", help="Run with Gunicorn")
    parser.add_argument("--port", type=int, default=int(os.getenv("PORT", 8000)))
    args = parser.parse_args()

    if args.dev:
        print("🚀 Starting development server...")
        run_dev_server(args.port)
    elif args.gunicorn:
        os.environ["BIND"] = f"0.0.0.0:{args.port}"
        print("🚀 Starting server with Gunicorn...")
        run_gunicorn()
    else:
        print("🚀 Starting server with Uvicorn...")
        run_prod_server(args.port)
