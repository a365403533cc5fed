"""Serve DeployMate with uvicorn: ``python -m deploymate``."""

import os

import uvicorn
from dotenv import load_dotenv


def main() -> None:
    load_dotenv()
    uvicorn.run(
        "deploymate.main:create_app",
        factory=True,
        host=os.environ.get("HOST", "0.0.0.0"),
        port=int(os.environ.get("PORT", "3001")),
    )


if __name__ == "__main__":
    main()
