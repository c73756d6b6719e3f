import os

import uvicorn


def main() -> None:
    port = int(os.getenv("PORT", 5000))
    uvicorn.run("portfolio_api.main:app", host=os.getenv("HOST", "0.0.0.0"), port=port)


if __name__ == "__main__":
    main()
