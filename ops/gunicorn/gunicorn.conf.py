# Gunicorn config for the Lab Notes API

import multiprocessing
import os

# Bind to localhost; Nginx proxies to this
bind = f"127.0.0.1:{os.getenv('SERVER_PORT', '5000')}"

# Request handlers are short and I/O bound (DB, SMTP, S3)
workers = max(2, multiprocessing.cpu_count() // 2)
threads = 4
worker_class = "gthread"

# Report emails render PDFs and talk to SMTP synchronously
timeout = 60
graceful_timeout = 30
keepalive = 5

# Logging
accesslog = "-"  # stdout
errorlog = "-"    # stderr
loglevel = "info"

# App entrypoint; the app directory holds the top-level modules
chdir = os.path.join(os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))), "labnotes")
wsgi_app = "wsgi:app"
