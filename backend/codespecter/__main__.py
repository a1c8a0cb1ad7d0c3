"""Run the API server: ``python -m codespecter``."""

import os

import uvicorn

from .web import create_app


def main():
    uvicorn.run(
        create_app(),
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
    )


if __name__ == "__main__":
    main()
