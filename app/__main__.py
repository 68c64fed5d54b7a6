import uvicorn

from app.core.config import Settings, settings


def main(config: Settings = settings) -> None:
    uvicorn.run(
        "app.main:app",
        host=config.app_host,
        port=config.app_port,
        reload=config.app_env == "dev",
        log_level=config.log_level.lower(),
    )


if __name__ == "__main__":
    main()
