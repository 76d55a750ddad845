#!/usr/bin/env python3
"""
Nyanbar Application Runner

Simple script to start the Nyanbar server with proper configuration.
"""

import sys

import uvicorn

from nyanbar.config import APP_NAME, HOST, PORT, DEBUG

if __name__ == "__main__":
    print(f"Starting {APP_NAME} Server...")
    print(f"Server will be available at: http://localhost:{PORT}")
    print("Press Ctrl+C to stop the server")
    print("-" * 50)

    try:
        uvicorn.run(
            "nyanbar.main:app",
            host=HOST,
            port=PORT,
            reload=DEBUG,
            log_level="info" if not DEBUG else "debug",
            access_log=True
        )
    except KeyboardInterrupt:
        print(f"\n👋 Server stopped. Thanks for using {APP_NAME}!")
    except Exception as e:
        print(f"Error starting server: {e}")
        sys.exit(1)
