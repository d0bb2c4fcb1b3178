import uvicorn

from prepdeck import create_app
from prepdeck.cli import find_free_port

app = create_app()


if __name__ == "__main__":
    port = find_free_port()
    print(f"PORT={port}", flush=True)
    uvicorn.run(app, host="127.0.0.1", port=port, log_level="warning")
