# Overview: WSGI entry point; `python wsgi.py` serves the local API for the desktop shell.

import os

from mnepos import create_app

app = create_app()


if __name__ == "__main__":
    app.run(
        host=os.environ.get("POS_HOST", "127.0.0.1"),
        port=int(os.environ.get("POS_PORT", "7777")),
        threaded=True,
    )
