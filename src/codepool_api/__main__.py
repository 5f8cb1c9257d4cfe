import uvicorn

from codepool_api.core.settings import settings


def main() -> None:
    uvicorn.run(
        "codepool_api.app:create_app",
        factory=True,
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.environment == "development",
        log_config=None,
    )


if __name__ == "__main__":
    main()
