"""Gunicorn configuration for production deployment."""

import os

# Server socket
bind = os.environ.get('BIND', '0.0.0.0:8000')

# Writers serialize on the SQLite write lock (BEGIN IMMEDIATE)
workers = int(os.environ.get('WEB_CONCURRENCY', 2))
threads = int(os.environ.get('GUNICORN_THREADS', 4))
worker_class = 'gthread'

# Must exceed DATABASE_BUSY_TIMEOUT
timeout = 60
graceful_timeout = 30

# Logging
_log_dir = os.environ.get('LOG_DIR', 'logs')
accesslog = os.path.join(_log_dir, 'gunicorn-access.log')
errorlog = os.path.join(_log_dir, 'gunicorn-error.log')
loglevel = os.environ.get('LOG_LEVEL', 'info')

proc_name = 'resourcebook'

preload_app = True

# Worker recycling
max_requests = 1000
max_requests_jitter = 50
