"""
Gunicorn configuration for the RegTruth API.

Usage:
    gunicorn regtruth.main:app -c gunicorn.conf.py

Pipeline stages run inside the request that triggers them (POST /internal/run_stage),
so the timeout covers a full extract stage rather than a single page render.
"""

import multiprocessing
import os

bind = f"0.0.0.0:{os.getenv('PORT', '8000')}"

# Each worker holds its own SQLAlchemy pool (pool_size + max_overflow connections).
workers = int(os.getenv("WEB_CONCURRENCY", str(min(multiprocessing.cpu_count() * 2 + 1, 8))))

worker_class = "uvicorn.workers.UvicornWorker"

timeout = int(os.getenv("GUNICORN_TIMEOUT", "300"))
graceful_timeout = 60
keepalive = 5

# Recycle workers so long-running LLM clients do not accumulate memory.
max_requests = 1000
max_requests_jitter = 100

accesslog = "-"
errorlog = "-"
loglevel = os.getenv("LOG_LEVEL", "info").lower()


def post_fork(server, worker):
    """Drop connections inherited from the master; each worker opens its own."""
    from regtruth.db.session import engine

    engine.dispose(close=False)
