import uvicorn

from api.main import _init_services


def main() -> None:
    """Run the API with auto-reload for local development."""
    config = _init_services()
    uvicorn.run(
        "api.main:app",
        host=config.server_host,
        port=config.server_port,
        reload=True,
    )


if __name__ == "__main__":
    main()
