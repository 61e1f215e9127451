#!/usr/bin/env python3
# run.py
"""
Development server runner.
For local development only - uses the in-memory gateway clients.
"""
import os

os.environ.setdefault("ENVIRONMENT", "local")
os.environ.setdefault("USE_FAKE_GATEWAYS", "true")
os.environ.setdefault("PAYSTACK_SECRET_KEY", "sk_test_fake_paystack")

import uvicorn

if __name__ == "__main__":
    print("Starting EventTalent development server with fake gateways")
    print("Access at: http://localhost:8000")
    print("API Docs: http://localhost:8000/docs")

    uvicorn.run("eventtalent.main:app", host="0.0.0.0", port=8000, reload=True, log_level="info")
