"""Run the PestHub server: python3 -m pesthub"""

import uvicorn

from pesthub.config import settings


def main() -> None:
    uvicorn.run("pesthub.api.app:app", host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
