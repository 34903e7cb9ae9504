#!/usr/bin/env python3
"""
Roast API Setup and Run Script

Loads `.env`, reports which integrations are configured, and starts the API
server with uvicorn.
"""

import os
import sys
from pathlib import Path

from dotenv import load_dotenv


def setup_environment():
    """Load .env and print the configuration summary"""
    print("Setting up Roast API environment...")

    env_file = Path(".env")
    if env_file.exists():
        load_dotenv(env_file)
        print(f"Loaded environment from {env_file.resolve()}")
    else:
        print("No .env file found; using process environment")

    from core.config import Settings

    settings = Settings.from_env()
    print(f"Environment: {settings.environment}")
    print(f"GitHub auth: {'yes' if settings.has_github_auth else 'no (60 requests/hour)'}")
    print(f"LLM provider: {'configured' if settings.has_llm else 'none (fallback roasts)'}")
    print(f"ElevenLabs TTS: {'configured' if settings.has_tts else 'not configured'}")

    os.environ.setdefault("PYTHONPATH", str(Path.cwd()))
    return settings


def check_dependencies():
    """Check if required dependencies are installed"""
    print("Checking dependencies...")

    missing = []
    for module in ("fastapi", "uvicorn", "aiohttp", "openai", "pydantic"):
        try:
            __import__(module)
        except ImportError:
            missing.append(module)

    if missing:
        print(f"Missing dependencies: {', '.join(missing)}")
        print("Install them with: pip install -e .")
        return False

    print("Core dependencies found")
    return True


def start_server(settings):
    """Start the Roast API server"""
    print("Starting The Git Roast Show API server...")
    print(f"Server will be available at: http://localhost:{settings.port}")
    print(f"Health check endpoint: http://localhost:{settings.port}/api/health")
    print("Press Ctrl+C to stop the server")
    print("-" * 50)

    try:
        import uvicorn

        uvicorn.run(
            "main:app",
            host="0.0.0.0",
            port=settings.port,
            reload=settings.is_development,
            log_level="info",
            access_log=True,
        )
    except KeyboardInterrupt:
        print("\nServer stopped by user")
    except Exception as e:
        print(f"Error starting server: {e}")
        sys.exit(1)


def main():
    """Main setup and run function"""
    print("The Git Roast Show API - Setup and Run")
    print("=" * 40)

    script_dir = Path(__file__).parent
    os.chdir(script_dir)
    sys.path.insert(0, str(script_dir))
    print(f"Working directory: {script_dir}")

    if not check_dependencies():
        sys.exit(1)

    settings = setup_environment()
    start_server(settings)


if __name__ == "__main__":
    main()
