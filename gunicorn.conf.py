"""Gunicorn production configuration."""
import multiprocessing
import os

bind = os.getenv("BIND", "0.0.0.0:8000")
# Each worker may hold IMPORT_MAX_CONCURRENT_BATCHES DB connections during an import
workers = int(os.getenv("WEB_CONCURRENCY", multiprocessing.cpu_count() + 1))
worker_class = "uvicorn.workers.UvicornWorker"
timeout = 300  # large workbook uploads
graceful_timeout = 30  # inline translation jobs drain on shutdown
keepalive = 5
max_requests = 1000
max_requests_jitter = 100
accesslog = "-"
errorlog = "-"
loglevel = "info"
