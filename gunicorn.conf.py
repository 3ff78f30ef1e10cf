"""
Gunicorn configuration for the Attune API.

Env vars that override defaults:
  PORT     — TCP port to bind (set by the hosting platform)
  WORKERS  — number of worker processes (default: 2)
  TIMEOUT  — seconds before a silent worker is restarted (default: 120)
"""
import os

bind = f"0.0.0.0:{os.environ.get('PORT', '8000')}"

# Each worker keeps its own attunement and provider caches in memory.
workers = int(os.environ.get("WORKERS", "2"))

worker_class = "uvicorn.workers.UvicornWorker"

keepalive = 5

# One synthesis can wait on the embedding call, the vector search and a
# model call of up to MODEL_TIMEOUT_SECONDS.
timeout = int(os.environ.get("TIMEOUT", "120"))

# Application logs go to stdout through attune.core.logging_config.
loglevel = os.environ.get("LOG_LEVEL", "info").lower()
accesslog = "-"
errorlog = "-"
access_log_format = '%(h)s "%(r)s" %(s)s %(b)sB %(D)sµs'

graceful_timeout = 30
