"""Entry point: python -m bet_sentinel.web"""
import uvicorn

from ..config import settings


def main():
    uvicorn.run(
        "bet_sentinel.web.app:app",
        host=settings.api_host,
        port=settings.api_port,
    )


if __name__ == "__main__":
    main()
