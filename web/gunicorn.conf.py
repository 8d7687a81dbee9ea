import os

wsgi_app = "gateway.wsgi:application"
bind = os.getenv("GUNI_BIND", "0.0.0.0:8000")

# Order creation waits on the payment processor, so keep a few threads per worker
workers = int(os.getenv("GUNI_WORKERS", str(min(max(2, (os.cpu_count() or 1) * 2), 8))))
worker_class = "gthread"
threads = int(os.getenv("GTHREADS", "4"))

timeout = int(os.getenv("GUNI_TIMEOUT", "60"))
graceful_timeout = int(os.getenv("GUNI_GRACEFUL_TIMEOUT", "30"))
keepalive = int(os.getenv("GUNI_KEEPALIVE", "5"))

preload_app = True
max_requests = int(os.getenv("GUNI_MAX_REQUESTS", "2000"))
max_requests_jitter = int(os.getenv("GUNI_MAX_REQUESTS_JITTER", "200"))

# Application logs go through Django's LOGGING (JSON); these are gunicorn's own
accesslog = os.getenv("GUNI_ACCESSLOG", "-")
errorlog = "-"
loglevel = os.getenv("GUNI_LOGLEVEL", "info")
