#!/usr/bin/env python3
"""
Kartproxy Backend - Run Script
This script checks the environment and starts the FastAPI backend server
"""

import sys
import subprocess
from pathlib import Path

REQUIRED_KEYS = ["LM_CLIENT_KEY", "LM_CLIENT_SECRET"]

def print_colored(message, color="blue"):
    """Print colored output"""
    colors = {
        "red": "\033[91m",
        "green": "\033[92m",
        "yellow": "\033[93m",
        "blue": "\033[94m",
        "reset": "\033[0m"
    }
    print(f"{colors.get(color, '')}{message}{colors['reset']}")

def check_file_exists(filepath, error_message):
    """Check if a file exists"""
    if not Path(filepath).exists():
        print_colored(f"❌ Error: {error_message}", "red")
        sys.exit(1)

def missing_credentials(settings) -> list:
    """Required Lantmäteriet settings that are empty or still a placeholder"""
    from kartproxy.core.config import is_placeholder_key
    return [k for k in REQUIRED_KEYS if is_placeholder_key(getattr(settings, k))]

def main():
    print_colored("🚀 Starting Kartproxy Backend...", "blue")

    # Check if we're in the backend directory
    check_file_exists("kartproxy/main.py", "kartproxy/main.py not found. Please run this script from the backend directory.")

    # Check if dependencies are installed
    print_colored("🔍 Checking dependencies...", "blue")
    try:
        import fastapi
        import uvicorn
        from kartproxy.core.config import Settings
    except ImportError:
        print_colored("❌ Dependencies not installed. Run: pip install -e ..", "red")
        sys.exit(1)

    # Check credentials through the same settings the server loads (.env, ../.env, environment)
    settings = Settings()
    if missing_credentials(settings):
        print_colored("⚠️  Warning: Lantmäteriet credentials not configured.", "yellow")
        print("Add the following variables to .env to enable the topographic tiles:")
        print("  LM_CLIENT_KEY=your_client_key")
        print("  LM_CLIENT_SECRET=your_client_secret")
        print("  OPENAI_API_KEY=your_api_key_here   # for the chat panel")
        print()

    port = str(settings.PORT)

    # Start the server
    print_colored("✅ All checks passed!", "green")
    print_colored("🌐 Starting Uvicorn server...", "blue")
    print(f"📍 Map server will be available at: http://localhost:{port}")
    print(f"📍 API Health check: http://localhost:{port}/health")
    print()
    print("Press Ctrl+C to stop the server")
    print()

    # Run uvicorn with auto-reload for development
    try:
        subprocess.run([
            sys.executable, "-m", "uvicorn",
            "kartproxy.main:app",
            "--reload",
            "--host", "0.0.0.0",
            "--port", port
        ], check=True)
    except KeyboardInterrupt:
        print_colored("\n👋 Map server stopped.", "yellow")
    except subprocess.CalledProcessError as e:
        print_colored(f"\n❌ Error starting server: {e}", "red")
        sys.exit(1)

if __name__ == "__main__":
    main()
