#!/usr/bin/env python3
"""
Backend startup wrapper.

    python -m captionflow.start_backend
"""
import os
import sys

import uvicorn


def main() -> None:
    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", "8000"))
    print(f"[Backend] Starting CaptionFlow on http://{host}:{port}")
    try:
        uvicorn.run(
            "captionflow.main:app",
            host=host,
            port=port,
            reload=False,
            log_level="info",
            access_log=True,
        )
    except KeyboardInterrupt:
        print("\n[Backend] Shutting down...")
        sys.exit(0)


if __name__ == "__main__":
    main()
