import uvicorn

from consultbook.core.config import settings


def main() -> None:
    uvicorn.run("consultbook.main:app", host=settings.app_host, port=settings.app_port)


if __name__ == "__main__":
    main()
