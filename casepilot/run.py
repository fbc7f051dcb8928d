#!/usr/bin/env python3
"""
Quick runner for CasePilot
==========================

Usage:
    python -m casepilot.run
"""

import uvicorn

if __name__ == "__main__":
    print("Starting CasePilot API...")
    print("API docs: http://localhost:8000/docs")
    print("Health:   http://localhost:8000/health")
    print()

    uvicorn.run(
        "casepilot.api:app",
        host="0.0.0.0",
        port=8000,
        reload=True
    )
