from __future__ import annotations

import os

import uvicorn
from dotenv import load_dotenv

load_dotenv()

HOST = os.environ.get("HOST", "0.0.0.0")
PORT = int(os.environ.get("PORT", "8000"))

if __name__ == "__main__":
    uvicorn.run("src.app:app", host=HOST, port=PORT)
