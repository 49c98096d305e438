"""
Configuration
=============
Loads environment variables from .env file using python-dotenv.

Environment Variables:
    GITHUB_TOKEN              — Required for fetching check suites and requesting reruns
    GITHUB_API_URL            — GitHub REST base URL (default: https://api.github.com)
    HTTP_TIMEOUT_SECONDS      — Per-request timeout for the GitHub client (default: 20)
    RERUN_MAX_SUITE_AGE_DAYS  — Suites this old or older cannot be re-run (default: 30)
    LOG_DIR                   — Directory for the daily log file (default: logs)

Timeouts:
    The resolver itself never times out a lookup. The only timeout in the
    service is the HTTP client timeout used by the GitHub collaborator.
"""
import os
from dotenv import load_dotenv

load_dotenv()

GITHUB_TOKEN = os.getenv("GITHUB_TOKEN")
GITHUB_API_URL = os.getenv("GITHUB_API_URL", "https://api.github.com").rstrip("/")
HTTP_TIMEOUT_SECONDS = float(os.getenv("HTTP_TIMEOUT_SECONDS", 20.0))

# GitHub refuses to rerequest suites older than a month
RERUN_MAX_SUITE_AGE_DAYS = int(os.getenv("RERUN_MAX_SUITE_AGE_DAYS", 30))

LOG_DIR = os.getenv("LOG_DIR", "logs")
