"""
Contact Shield server entry point.

Usage:
  SANITY_CONTACT_WEBHOOK_SECRET=... DATABASE_URL=sqlite:///./contact_submissions.db python main.py
"""

from __future__ import annotations

import os

import uvicorn

from app.main import create_app

app = create_app()


def main() -> None:
    config = uvicorn.Config(
        "main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
        proxy_headers=True,
        forwarded_allow_ips=os.getenv("FORWARDED_ALLOW_IPS", "127.0.0.1"),
    )
    server = uvicorn.Server(config)
    server.run()


if __name__ == "__main__":
    main()
