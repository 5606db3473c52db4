#!/usr/bin/env python3
"""
Entry Point for the Tutor Gateway

This script starts the FastAPI server using uvicorn.

Usage:
    python run.py

Environment Variables:
    - PORT: Server port (default: 8000)
    - HOST: Server host (default: 0.0.0.0)
    - DEBUG: Enable auto-reload (default: true)
    - OPENROUTER_API_KEY: Upstream model key (required for tutor calls)
"""

import os


def main():
    """Run the tutor gateway server."""
    import uvicorn
    from tutor_gateway.config import settings
    from tutor_gateway.logging_config import setup_logging

    # Setup logging first
    setup_logging()

    host = os.environ.get("HOST", settings.host)
    port = int(os.environ.get("PORT", settings.port))
    debug = os.environ.get("DEBUG", str(settings.debug)).lower() == "true"
    key_status = "configured" if settings.openrouter_api_key else "MISSING"

    print(f"""
    ╔══════════════════════════════════════════════════════════╗
    ║           Tutor Gateway - Starting                       ║
    ╠══════════════════════════════════════════════════════════╣
    ║  Environment: {settings.env:<43} ║
    ║  Host: {host:<50} ║
    ║  Port: {port:<50} ║
    ║  Debug: {str(debug):<49} ║
    ║  OpenRouter key: {key_status:<40} ║
    ╠══════════════════════════════════════════════════════════╣
    ║  Tutor API: http://{host}:{port}/api/ai/tutor{' ' * 14}║
    ║  API Docs:  http://{host}:{port}/docs{' ' * 22}║
    ╚══════════════════════════════════════════════════════════╝
    """)

    uvicorn.run(
        "tutor_gateway.main:app",
        host=host,
        port=port,
        reload=debug and not settings.is_production,
        log_level="info" if debug else "warning",
    )


if __name__ == "__main__":
    main()
