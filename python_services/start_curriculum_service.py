#!/usr/bin/env python3
"""
Startup script for the Curriculum Service.
Handles environment setup and service initialization.
"""

import importlib.util
import logging
import sys
from pathlib import Path

import uvicorn

BASE_DIR = Path(__file__).resolve().parent
REQUIRED_MODULES = ["fastapi", "uvicorn", "pydantic_settings", "openai", "anthropic", "reportlab"]


def check_environment():
    """Check if the environment is properly set up."""
    print("🔍 Checking environment...")

    if not (hasattr(sys, "base_prefix") and sys.base_prefix != sys.prefix):
        print("⚠️  Warning: Not running in a virtual environment")

    env_file = BASE_DIR / ".env"
    if not env_file.exists():
        example_file = BASE_DIR / "env.example"
        if example_file.exists():
            env_file.write_text(example_file.read_text())
            print("✅ .env file created from env.example. Please edit it with your API keys.")
        else:
            print("⚠️  No .env file found; using the process environment only")
    return True


def check_dependencies():
    """Check if required dependencies are installed."""
    print("📦 Checking dependencies...")
    missing = [name for name in REQUIRED_MODULES if importlib.util.find_spec(name) is None]
    if missing:
        print(f"❌ Missing dependencies: {', '.join(missing)}")
        print("   Run: pip install -e .")
        return False
    print("✅ All dependencies are installed")
    return True


def start_service():
    """Start the Curriculum Service."""
    print("🚀 Starting Curriculum Service...")
    sys.path.insert(0, str(BASE_DIR))

    from shared.config import get_settings

    settings = get_settings()
    logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))

    print(f"📍 Service: {settings.service_name}")
    print(f"🌐 Port: {settings.service_port}")
    print(f"🐛 Debug: {settings.debug}")

    providers = []
    if settings.gemini_api_key:
        providers.append("Gemini")
    if settings.openai_api_key:
        providers.append("OpenAI")
    if settings.anthropic_api_key:
        providers.append("Claude")

    if not providers:
        print("⚠️  No AI providers configured! Add API keys to .env file")
        print("   The service will start but analysis and generation requests will fail")
    else:
        print(f"🤖 AI Providers: {', '.join(providers)}")
    if not settings.supabase_enabled:
        print("ℹ️  Supabase not configured; suites will not be persisted")

    print("\n" + "=" * 50)
    print("🎯 Service starting at:")
    print(f"   http://localhost:{settings.service_port}")
    print(f"   Health check: http://localhost:{settings.service_port}/health")
    print(f"   API docs: http://localhost:{settings.service_port}/docs")
    print("=" * 50 + "\n")

    uvicorn.run(
        "curriculum_service.main:app",
        host="0.0.0.0",
        port=settings.service_port,
        reload=settings.debug,
        app_dir=str(BASE_DIR),
        log_level=settings.log_level.lower(),
    )
    return True


def main():
    """Main startup function."""
    print("🌟 Curriculum Service Startup")
    print("=" * 50)

    if not check_environment():
        print("❌ Environment check failed!")
        return

    if not check_dependencies():
        print("❌ Dependency check failed!")
        return

    start_service()


if __name__ == "__main__":
    main()
