"""
Prediction model client.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from shared.config import DEFAULT_PREDICT_ENDPOINT

from .upstream_client import UpstreamClient


@dataclass
class Prediction:
    """Successful upstream answer."""

    payload: Any
    is_json: bool
    content_type: Optional[str] = None


class PredictClient(UpstreamClient):
    """Client for the exoplanet classification model endpoint."""

    service_name = "predict"

    def __init__(self, endpoint: Optional[str] = None, **kwargs):
        super().__init__(**kwargs)
        self.endpoint = endpoint or DEFAULT_PREDICT_ENDPOINT

    async def predict(self, features: Dict[str, Any]) -> Prediction:
        """POST the feature object and return the model's verdict."""
        self.logger.info("Forwarding prediction request", endpoint=self.endpoint)
        self.logger.debug("Prediction request body", body=features)

        response = await self._send(
            "POST",
            self.endpoint,
            json=features,
            headers={"Content-Type": "application/json"},
        )
        self.raise_for_upstream(response)

        content_type = response.headers.get("content-type")
        try:
            return Prediction(payload=response.json(), is_json=True, content_type=content_type)
        except ValueError:
            # Some model deployments answer with plain text
            return Prediction(payload=response.text, is_json=False, content_type=content_type)
