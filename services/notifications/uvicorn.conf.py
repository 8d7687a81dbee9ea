import os

# Alerts are small, fire-and-forget posts from the web tier
app = "main:app"
host = os.getenv("HOST", "0.0.0.0")
port = int(os.getenv("PORT", "9003"))
workers = int(os.getenv("UVICORN_WORKERS", "2"))
loop = "uvloop"  # requires uvicorn[standard]
http = "h11"
timeout_keep_alive = int(os.getenv("UVICORN_KEEPALIVE", "5"))
proxy_headers = True
log_level = os.getenv("LOG_LEVEL", "info")
