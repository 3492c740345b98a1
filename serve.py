"""Run the API locally.

Run with:  python3 serve.py
"""

from __future__ import annotations

import os

import uvicorn

from api.main import create_app


def main() -> None:
    port = int(os.getenv("PORT", "8000"))
    uvicorn.run(create_app(), host=os.getenv("HOST", "127.0.0.1"), port=port, log_level="warning")


if __name__ == "__main__":
    main()
