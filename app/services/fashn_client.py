"""
FASHN API client
Submits a generation job, polls it to completion and falls back across candidate models
"""
import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field

from app.core.config import settings
from app.services.fashn_inputs import FashnModel, enforce_input_whitelist

logger = logging.getLogger(__name__)


class FashnError(Exception):
    """Generation failure; the message is the machine-readable code or upstream text"""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class FashnResult(BaseModel):
    output_url: str
    model: FashnModel
    prediction_id: str
    inputs: Dict[str, Any] = Field(default_factory=dict)
    credits_remaining: Optional[int] = None
    errors: List[str] = Field(default_factory=list)

    model_config = ConfigDict(protected_namespaces=())


def _response_json(response: httpx.Response) -> Optional[Any]:
    try:
        return response.json()
    except ValueError:
        return None


def _error_text(payload: Any) -> Optional[str]:
    if not isinstance(payload, dict):
        return None
    for key in ("message", "error"):
        value = payload.get(key)
        if isinstance(value, str) and value:
            return value
        if isinstance(value, dict) and isinstance(value.get("message"), str):
            return value["message"]
    return None


def _http_error(prefix: str, response: httpx.Response) -> FashnError:
    body = response.text
    message = _error_text(_response_json(response))
    if message:
        return FashnError(message)
    suffix = f": {body[:200]}" if body else ""
    return FashnError(f"{prefix}_{response.status_code}{suffix}")


class FashnClient:
    """Thin async client over the FASHN run/status endpoints"""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        submit_timeout: Optional[float] = None,
        poll_interval: Optional[float] = None,
        status_timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._api_key = api_key
        self._base_url = base_url
        self._submit_timeout = submit_timeout
        self._poll_interval = poll_interval
        self._status_timeout = status_timeout
        self._transport = transport

    # Unset values fall back to settings at call time

    @property
    def api_key(self) -> str:
        return self._api_key if self._api_key is not None else settings.FASHN_API_KEY

    @property
    def base_url(self) -> str:
        return (self._base_url or settings.fashn_base_url).rstrip("/")

    @property
    def submit_timeout(self) -> float:
        return self._submit_timeout if self._submit_timeout is not None else settings.FASHN_SUBMIT_TIMEOUT_SECONDS

    @property
    def poll_interval(self) -> float:
        return self._poll_interval if self._poll_interval is not None else settings.FASHN_POLL_INTERVAL_SECONDS

    @property
    def status_timeout(self) -> float:
        return self._status_timeout if self._status_timeout is not None else settings.FASHN_STATUS_TIMEOUT_SECONDS

    def _headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }

    # =========================================================================
    # FALLBACK LOOP
    # =========================================================================

    async def run_with_fallback(
        self,
        candidates: List[FashnModel],
        build_inputs: Callable[[FashnModel], Dict[str, Any]],
    ) -> FashnResult:
        """
        Try each candidate in order until one completes

        build_inputs is called per candidate; a build error fails only that candidate.
        Raises the last recorded FashnError once every candidate has failed.
        """
        if not self.api_key:
            raise FashnError("FASHN_API_KEY_MISSING")

        errors: List[str] = []
        last_error: Optional[FashnError] = None

        async with httpx.AsyncClient(transport=self._transport) as client:
            for model in candidates:
                try:
                    inputs = enforce_input_whitelist(model, build_inputs(model))
                except ValueError as e:
                    logger.warning(f"FASHN: skipping {model.value}, input build failed: {e}")
                    last_error = FashnError(str(e))
                    errors.append(f"{model.value}: {e}")
                    continue

                logger.debug(f"FASHN: inputs for {model.value}: {inputs}")

                try:
                    prediction_id = await self._submit(client, model, inputs)
                    output_url, credits_remaining = await self._poll(client, prediction_id)
                except FashnError as e:
                    logger.warning(f"FASHN: candidate {model.value} failed: {e.message}")
                    last_error = e
                    errors.append(f"{model.value}: {e.message}")
                    continue

                logger.info(f"FASHN: {model.value} completed prediction {prediction_id}")
                return FashnResult(
                    output_url=output_url,
                    model=model,
                    prediction_id=prediction_id,
                    inputs=inputs,
                    credits_remaining=credits_remaining,
                    errors=errors,
                )

        raise last_error or FashnError("FASHN_API_UNAVAILABLE")

    # =========================================================================
    # SUBMIT & POLL
    # =========================================================================

    async def _submit(self, client: httpx.AsyncClient, model: FashnModel, inputs: Dict[str, Any]) -> str:
        payload = {"model_name": model.value, "inputs": inputs}
        try:
            response = await asyncio.wait_for(
                client.post(
                    f"{self.base_url}/run",
                    json=payload,
                    headers=self._headers(),
                    timeout=self.submit_timeout,
                ),
                timeout=self.submit_timeout,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException):
            raise FashnError("FASHN_API_TIMEOUT")
        except httpx.HTTPError as e:
            raise FashnError(f"FASHN_API_REQUEST_FAILED: {e}")

        if not response.is_success:
            raise _http_error("FASHN_API_HTTP", response)

        result = _response_json(response)
        prediction_id = result.get("id") if isinstance(result, dict) else None
        if not isinstance(prediction_id, str) or not prediction_id:
            raise FashnError(_error_text(result) or "FASHN_API_NO_ID")
        return prediction_id

    async def _poll(self, client: httpx.AsyncClient, prediction_id: str):
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.status_timeout
        status_url = f"{self.base_url}/status/{prediction_id}"

        while True:
            remaining = deadline - loop.time()
            if remaining <= 0:
                break
            # Each status request is bounded by what is left of the overall deadline
            try:
                response = await asyncio.wait_for(
                    client.get(
                        status_url,
                        headers={"Authorization": f"Bearer {self.api_key}"},
                        timeout=remaining,
                    ),
                    timeout=remaining,
                )
            except (asyncio.TimeoutError, httpx.TimeoutException):
                raise FashnError("FASHN_STATUS_TIMEOUT")
            except httpx.HTTPError as e:
                raise FashnError(f"FASHN_STATUS_REQUEST_FAILED: {e}")

            if not response.is_success:
                raise _http_error("FASHN_STATUS_HTTP", response)

            status_payload = _response_json(response)
            if not isinstance(status_payload, dict):
                raise FashnError("FASHN_STATUS_PARSE_ERROR")

            status = status_payload.get("status")
            if status == "completed":
                output = status_payload.get("output")
                output_url = output[0] if isinstance(output, list) and output else None
                if not isinstance(output_url, str) or not output_url:
                    raise FashnError("FASHN_API_NO_OUTPUT")
                credits_remaining = status_payload.get("credits_remaining")
                if not isinstance(credits_remaining, int):
                    credits_remaining = None
                return output_url, credits_remaining

            if status == "failed":
                error = status_payload.get("error")
                if isinstance(error, dict):
                    error = error.get("message")
                raise FashnError(error if isinstance(error, str) and error else "FASHN_API_FAILED")

            logger.debug(f"FASHN: prediction {prediction_id} is {status}")
            await asyncio.sleep(min(self.poll_interval, max(deadline - loop.time(), 0)))

        raise FashnError("FASHN_STATUS_TIMEOUT")


# Global service instance
fashn_client = FashnClient()
