#!/usr/bin/env python3
"""
Development server startup script.
"""
import uvicorn

from shared.config.settings import settings

print(f"Starting environment settings for: {settings.environment}")

def main():
    """Development server entry point."""
    uvicorn.run(
        "vendorpay_client.main:app",
        host=settings.view_host,
        port=settings.view_port,
        reload=settings.view_reload,
        log_level=settings.log_level.lower()
    )

if __name__ == "__main__":
    main()
