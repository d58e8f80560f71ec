import uvicorn

from .core.config import settings


def main() -> None:
    uvicorn.run(
        "livetimers.main:app",
        host=settings.HOST,
        port=settings.PORT,
        log_config=None,
        proxy_headers=True,
    )


if __name__ == "__main__":
    main()
