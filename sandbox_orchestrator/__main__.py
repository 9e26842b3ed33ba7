"""Start the orchestrator API with uvicorn."""

import uvicorn

from .settings import HOST, PORT


def main():
    uvicorn.run(
        "sandbox_orchestrator.api:app",
        host=HOST,
        port=PORT,
        log_level="info",
    )


if __name__ == "__main__":
    main()
