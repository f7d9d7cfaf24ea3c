"""
Gunicorn Configuration

Uvicorn worker for the Retail Sales Analytics API. One worker by default:
ingestion batches are serialized per process.
"""

import os

bind = os.getenv("BIND", "0.0.0.0:8000")
workers = int(os.getenv("WORKERS", 1))
worker_class = "uvicorn.workers.UvicornWorker"
timeout = 120
keepalive = 5
graceful_timeout = 30
proc_name = "retail-analytics-api"

# Logging is rendered by structlog inside the app
errorlog = "-"
accesslog = None
loglevel = os.getenv("LOG_LEVEL", "info").lower()
