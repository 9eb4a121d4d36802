"""
Pass-through proxy for the prediction model.
"""

from fastapi import Request, Response
from fastapi.responses import JSONResponse

from shared.errors import MethodNotAllowedError, ProxyLayerException
from shared.logging import get_logger

from ..adapters.predict_client import PredictClient
from .request_body import read_json_object


class PredictProxy:
    """Forwards ``POST /api/predict`` bodies to the model. Never cached."""

    def __init__(self, client: PredictClient):
        self.client = client
        self.logger = get_logger("proxy.predict")

    async def handle(self, request: Request) -> Response:
        if request.method != "POST":
            raise MethodNotAllowedError(request.method, "POST")

        features = await read_json_object(request)

        try:
            prediction = await self.client.predict(features)
        except ProxyLayerException:
            raise
        except Exception as e:
            self.logger.error("Predict proxy error", error=str(e), exc_info=True)
            raise ProxyLayerException("ProxyError", "Proxy error", status_code=500)

        if prediction.is_json:
            return JSONResponse(content=prediction.payload)
        return Response(
            content=prediction.payload,
            media_type=prediction.content_type or "text/plain",
        )
