"""Run the customer API: python -m customer_service"""

import uvicorn

from customer_service.config import Settings


def main() -> None:
    settings = Settings.from_env()
    uvicorn.run("customer_service.app:build_app", factory=True, host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    main()
