import logging

import uvicorn

from railfaults.config import get_settings


def main() -> None:
    settings = get_settings()
    logging.basicConfig(level=logging.INFO, format="%(asctime)s | %(levelname)s | %(name)s | %(message)s")
    uvicorn.run("services.faults.app:app", host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
