"""
Entry point for the Meeting Bot API (python -m meeting_bot).
"""

import sys

import uvicorn

from meeting_bot.config import settings


def run():
    """Run the Meeting Bot API server."""
    print("\n" + "=" * 60)
    print("MEETING BOT ORCHESTRATOR")
    print("=" * 60)
    print(f"📍 Host: {settings.host}:{settings.port}")
    print(f"⏱️  Calendar poll: every {settings.scheduler.poll_interval_seconds}s")
    print(f"💾 Sessions: {settings.storage.sessions_db_path}")
    print(f"♻️  Restore enabled bots on startup: {settings.restore_on_startup}")
    print(f"📚 API Docs: http://{settings.host}:{settings.port}/api/docs")
    print("=" * 60 + "\n")

    uvicorn.run(
        "meeting_bot.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )


def main():
    try:
        run()
    except KeyboardInterrupt:
        print("\n👋 Goodbye!")
    except Exception as e:
        print(f"\n❌ Fatal error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
