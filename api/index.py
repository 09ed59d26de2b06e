"""Serverless entry point: imports the Flask app from the project root."""
import sys
import os

# Project root on the path so `paycheck_agent` and `web_app` resolve
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from web_app import app  # noqa: F401  (the platform detects `app`)
