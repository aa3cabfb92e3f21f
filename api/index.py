"""
Serverless entry point for the Support Knowledge Base API
"""
import sys
import os

# Add parent directory to path
parent_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if parent_dir not in sys.path:
    sys.path.insert(0, parent_dir)

# Set environment variables for serverless
os.environ.setdefault("ENVIRONMENT", "production")

from mangum import Mangum
from src.main import app

# Lifespan stays on: the vector store and LLM client are created at startup
handler = Mangum(app, lifespan="auto")
