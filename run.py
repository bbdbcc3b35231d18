"""Local development server.

Usage:
    python run.py              # http://localhost:5000
    PORT=8000 python run.py

Reads .env first, so CAKTO_WEBHOOK_SECRET, DATABASE_URL and the MAIL_*
settings can live there. Test purchases can then be pushed through the
webhook pipeline with `flask simulate-purchase`.
"""

import os

from dotenv import load_dotenv

load_dotenv()

from storefront import create_app  # noqa: E402

app = create_app()

if __name__ == "__main__":
    app.run(
        debug=app.config.get("DEBUG", False),
        host=os.environ.get("HOST", "127.0.0.1"),
        port=int(os.environ.get("PORT", 5000)),
    )
