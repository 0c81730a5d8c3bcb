# Gunicorn configuration file
# Logging to stdout/stderr; systemd captures output.
import multiprocessing
import os

bind = os.environ.get('GUNICORN_BIND', '0.0.0.0:8000')

_default_workers = (2 * multiprocessing.cpu_count()) + 1
workers = int(os.environ.get('GUNICORN_WORKERS', _default_workers))
worker_class = os.environ.get('GUNICORN_WORKER_CLASS', 'gthread')
threads = int(os.environ.get('GUNICORN_THREADS', '4'))

# Stripe webhook и CSV-импорт укладываются в 60 секунд
timeout = 60
graceful_timeout = 30
keepalive = 5

max_requests = 2000
max_requests_jitter = 200

loglevel = os.environ.get('GUNICORN_LOG_LEVEL', 'info')
accesslog = '-'
errorlog = '-'
capture_output = True

wsgi_app = 'ugs_panel.wsgi:application'
