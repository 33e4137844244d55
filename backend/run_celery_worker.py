#!/usr/bin/env python3
# backend/run_celery_worker.py
"""
Development Celery worker runner.
Runs the worker with an embedded beat scheduler so the nightly expiry
sweep fires locally without a separate beat process.
"""
import os
from pathlib import Path
import subprocess
import sys

backend_dir = Path(__file__).parent
sys.path.insert(0, str(backend_dir))
os.chdir(backend_dir)

if __name__ == "__main__":
    queues = os.getenv("CELERY_QUEUES") or "bookings,celery"
    print(f"Starting Celery worker with beat; consuming queues: {queues}")

    cmd = [
        sys.executable,
        "-m",
        "celery",
        "-A",
        "wellness.tasks.celery_app",
        "worker",
        "--beat",
        "--loglevel=info",
        "--concurrency=2",
        "--max-tasks-per-child=100",
        "-Q",
        queues,
    ]

    subprocess.run(cmd)
