"""
Gunicorn configuration for the log viewer API.

Usage:
    gunicorn -c gunicorn.conf.py logviewer.main:app
"""

import multiprocessing
import os

# Server socket
bind = os.getenv("GUNICORN_BIND", "0.0.0.0:8000")
backlog = 2048

# Each worker builds its own store context in the lifespan.
workers = int(os.getenv("GUNICORN_WORKERS", min(4, multiprocessing.cpu_count())))
worker_class = "uvicorn.workers.UvicornWorker"

max_requests = int(os.getenv("GUNICORN_MAX_REQUESTS", "1000"))
max_requests_jitter = int(os.getenv("GUNICORN_MAX_REQUESTS_JITTER", "100"))

# Date fan-out can take a while against a slow store.
timeout = int(os.getenv("GUNICORN_TIMEOUT", "120"))
keepalive = 5
graceful_timeout = 30

proc_name = "logviewer-api"

# Logging
errorlog = "-"
accesslog = "-"
loglevel = os.getenv("GUNICORN_LOG_LEVEL", "info")
access_log_format = '%(h)s %(l)s %(u)s %(t)s "%(r)s" %(s)s %(b)s "%(f)s" "%(a)s" %(D)s'

# In-memory mock store must not be shared across forked workers.
preload_app = False
