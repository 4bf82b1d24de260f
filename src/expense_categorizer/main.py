import uvicorn

from expense_categorizer.app import create_app
from expense_categorizer.logger import get_logging_config

app = create_app()


def run(host: str = "0.0.0.0", port: int = 8000) -> None:
    uvicorn.run(app, host=host, port=port, log_config=get_logging_config())


if __name__ == "__main__":
    run()
