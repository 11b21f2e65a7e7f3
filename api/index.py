from __future__ import annotations

import os
from pathlib import Path

from mangum import Mangum


ROOT = Path(__file__).resolve().parents[1]

# Serverless bundles ship the sample corpus and profiles next to this file
os.environ.setdefault("TRANSCRIPTS_DIR", str(ROOT / "sample"))

from app.main import create_app  # noqa: E402
from app.state import build_context  # noqa: E402
from analyzer.core.config import load_config  # noqa: E402


app = create_app(build_context(load_config(os.getenv("ANALYZER_PROFILE", "default"), ROOT / "configs")))


class handler(Mangum):
    def __init__(self):
        super().__init__(app, lifespan="auto")
