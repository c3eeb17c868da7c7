from __future__ import annotations

import os
import sys

from dotenv import load_dotenv
from streamlit.web import cli as stcli

THIS_DIR = os.path.dirname(__file__)
APP_PATH = os.path.abspath(os.path.join(THIS_DIR, "..", "app.py"))


def main() -> None:
    # Load environment from the working directory .env before starting the server
    load_dotenv(os.path.join(os.getcwd(), ".env"))
    sys.argv = ["streamlit", "run", APP_PATH, *sys.argv[1:]]
    sys.exit(stcli.main())


if __name__ == "__main__":
    main()
