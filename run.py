#!/usr/bin/env python3
"""
Billing Core Entry Point

Starts the FastAPI server with settings from BILLING_* environment variables.
"""

import sys

from billing_core.config import get_config
from billing_core.logging_config import setup_logging
from billing_core.api import run_server


if __name__ == "__main__":
    config = get_config()
    setup_logging(level=config.log_level, log_format=config.log_format, log_file=config.log_file)

    print("💳 Starting Billing Core...")
    print("💰 All financial calculations use Decimal precision")
    print(f"🌐 API available at: http://localhost:{config.api_port}")
    print(f"📚 Documentation at: http://localhost:{config.api_port}/docs")
    print()

    try:
        run_server(host=config.api_host, port=config.api_port, debug=False)
    except KeyboardInterrupt:
        print("\n👋 Shutting down Billing Core...")
    except Exception as e:
        print(f"❌ Error starting server: {e}")
        sys.exit(1)
