"""
Entry point for the Meeting Bot API.
Starts the FastAPI application with uvicorn.
"""

from meeting_bot.__main__ import main


if __name__ == "__main__":
    main()
