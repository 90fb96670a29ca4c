import uvicorn

from todo_service.config import get_settings


def main():
    settings = get_settings()
    uvicorn.run(
        "todo_service.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        reload=settings.debug,
    )


if __name__ == "__main__":
    main()
