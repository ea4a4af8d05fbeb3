"""Gunicorn settings for the DockSlot API (`gunicorn -c gunicorn.conf.py wsgi:application`)."""

import os

bind = os.environ.get('GUNICORN_BIND', '0.0.0.0:8000')

# SQLite serialises writers, so a couple of processes with threads is plenty
workers = int(os.environ.get('GUNICORN_WORKERS', 2))
threads = int(os.environ.get('GUNICORN_THREADS', 4))
worker_class = 'gthread'

# Outbound calls (Resend, Twilio, NOAA) time out at 15s each
timeout = 60
graceful_timeout = 30
keepalive = 5

log_dir = os.environ.get('LOG_DIR', 'logs')
accesslog = os.path.join(log_dir, 'gunicorn-access.log')
errorlog = os.path.join(log_dir, 'gunicorn-error.log')
loglevel = os.environ.get('GUNICORN_LOG_LEVEL', 'info')

proc_name = 'dockslot'
preload_app = True

max_requests = 1000
max_requests_jitter = 50
