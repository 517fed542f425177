import uvicorn

from oas3app.config import settings


def main() -> None:
    uvicorn.run(
        "oas3app.main:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
