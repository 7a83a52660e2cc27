"""Run the URL shortener API.

Settings come from the environment (and a local ``.env`` file, if any):
RATE_LIMIT_REQUESTS, RATE_LIMIT_WINDOW, PORT, BASE_URL, and friends.
"""

from dotenv import load_dotenv

from shortener.app import create_app
from shortener.config import Config
from shortener.logging_config import setup_logging

load_dotenv()

config = Config.from_env()
setup_logging(config.log_level)

app = create_app(config)


if __name__ == "__main__":
    app.run(host="0.0.0.0", port=config.port, threaded=True)
