"""
Mock upstream server standing in for the archive, prediction and chat services.
"""

import csv
import io
from collections import Counter
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Header, HTTPException, Query, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from shared.logging import get_logger


MOCK_API_KEY = "mock-key"

SAMPLE_PLANETS: List[Dict[str, Any]] = [
    {
        "pl_name": "Kepler-22 b",
        "hostname": "Kepler-22",
        "pl_orbper": 289.8623,
        "pl_rade": 2.1,
        "st_teff": 5596,
        "sy_dist": 194.2,
        "disc_facility": "Kepler",
    },
    {
        "pl_name": "TRAPPIST-1 e",
        "hostname": "TRAPPIST-1",
        "pl_orbper": 6.101013,
        "pl_rade": 0.92,
        "st_teff": 2566,
        "sy_dist": 12.43,
        "disc_facility": "Spitzer",
    },
    {
        "pl_name": "TOI-700 d",
        "hostname": "TOI-700",
        "pl_orbper": 37.42475,
        "pl_rade": 1.073,
        "st_teff": 3459,
        "sy_dist": 31.13,
        "disc_facility": "TESS",
    },
]


class MockUpstreamServer:
    """Mock implementation of the three third-party services."""

    def __init__(self, api_key: str = MOCK_API_KEY):
        self.api_key = api_key
        self.logger = get_logger("mock.upstream")
        self.app = FastAPI(title="Mock Upstream", version="1.0.0")
        self.request_counts: Counter = Counter()

        self._setup_routes()

    def _setup_routes(self):
        """Set up mock upstream routes."""

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": "mock-upstream",
                "message": "Mock archive, prediction and chat upstreams",
                "version": "1.0.0",
                "requests": dict(self.request_counts),
            }

        @self.app.get("/TAP/sync")
        async def tap_sync(
            query: Optional[str] = Query(None),
            format: str = Query("json"),
        ):
            """Answer an ADQL query with the sample planet table."""
            self.request_counts["archive"] += 1
            if not query:
                return PlainTextResponse("ERROR: missing QUERY parameter", status_code=400)

            rows = self._select_rows(query)
            if format == "csv":
                return PlainTextResponse(
                    self._to_csv(rows),
                    media_type="text/csv",
                    headers={"cache-control": "max-age=60"},
                )
            return JSONResponse(rows)

        @self.app.post("/predict/")
        async def predict(request: Request):
            """Classify a candidate from its transit parameters."""
            self.request_counts["predict"] += 1
            features = await request.json()
            if not isinstance(features, dict):
                raise HTTPException(status_code=422, detail="Expected a JSON object")
            return self._classify(features)

        @self.app.post("/chat")
        async def chat(request: Request, authorization: Optional[str] = Header(None)):
            """Completion-style reply echoing the prompt."""
            self.request_counts["chat"] += 1
            if authorization != f"Bearer {self.api_key}":
                raise HTTPException(status_code=401, detail="Invalid API key")

            body = await request.json()
            prompt = body.get("prompt", "")
            return {"choices": [{"text": f"About '{prompt}': this looks like a transiting exoplanet."}]}

    def _select_rows(self, query: str) -> List[Dict[str, Any]]:
        """Very small ADQL subset: filter by a facility name mentioned in the query."""
        lowered = query.lower()
        for facility in ("kepler", "tess", "spitzer"):
            if facility in lowered:
                return [row for row in SAMPLE_PLANETS if row["disc_facility"].lower() == facility]
        return list(SAMPLE_PLANETS)

    def _to_csv(self, rows: List[Dict[str, Any]]) -> str:
        buffer = io.StringIO()
        writer = csv.DictWriter(buffer, fieldnames=list(SAMPLE_PLANETS[0].keys()))
        writer.writeheader()
        writer.writerows(rows)
        return buffer.getvalue()

    def _classify(self, features: Dict[str, Any]) -> Dict[str, Any]:
        radius = float(features.get("koi_prad", 0) or 0)
        depth = float(features.get("koi_depth", 0) or 0)
        score = 0.9 if 0.5 <= radius <= 20 and depth > 0 else 0.2
        return {
            "prediction": "CONFIRMED" if score >= 0.5 else "FALSE POSITIVE",
            "probability": score,
        }


def create_app():
    """Create mock upstream application."""
    server = MockUpstreamServer()
    return server.app


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(create_app(), host="0.0.0.0", port=8099)
