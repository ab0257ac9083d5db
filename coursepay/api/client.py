"""
Storefront backend HTTP client.

Async wrapper over the four endpoints the pricing engine needs: coupon catalog,
coupon validation, wallet snapshot and order creation. Authentication is
assumed to be established already; an optional bearer token is forwarded.
"""
from typing import Optional, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from coursepay.api.schemas import (
    CouponListResponse,
    CouponValidationRequest,
    CouponValidationResponse,
    CreateOrderRequest,
    CreateOrderResponse,
    WalletResponse,
)
from coursepay.core.config import CheckoutConfig, get_config
from coursepay.core.errors import NetworkError
from coursepay.utils.logger import get_logger
from coursepay.utils.money import to_wire

logger = get_logger("api.client")

ResponseT = TypeVar("ResponseT", bound=BaseModel)


class BackendClient:
    """
    Client for the storefront REST backend.

    Pass `transport` to route requests somewhere other than the network
    (tests mount an in-process app through httpx.ASGITransport).
    """

    def __init__(
        self,
        config: Optional[CheckoutConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config or get_config()
        headers = {"Accept": "application/json"}
        if self.config.api_token:
            headers["Authorization"] = f"Bearer {self.config.api_token}"
        self._http = httpx.AsyncClient(
            base_url=self.config.api_base_url,
            headers=headers,
            timeout=self.config.request_timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> "BackendClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        response_model: Type[ResponseT],
        json: Optional[dict] = None,
    ) -> ResponseT:
        """Send a request and parse the body into response_model."""
        try:
            resp = await self._http.request(method, path, json=json)
            try:
                resp.raise_for_status()
            except httpx.HTTPStatusError as e:
                # The backend reports rejections as 4xx with a {success, message} body
                try:
                    return response_model.model_validate(e.response.json())
                except (ValueError, ValidationError):
                    logger.warning(
                        "backend: %s %s HTTP %s body=%s",
                        method, path, e.response.status_code, e.response.text[:500],
                    )
                    raise NetworkError(
                        f"HTTP {e.response.status_code} from {path}",
                        status_code=e.response.status_code,
                    ) from e
            return response_model.model_validate(resp.json())
        except httpx.RequestError as e:
            logger.error("backend: %s %s request failed: %s", method, path, e)
            raise NetworkError(f"Backend unreachable: {e}") from e
        except (ValueError, ValidationError) as e:
            # ValidationError subclasses ValueError; both mean an unusable body
            logger.error("backend: %s %s returned an unusable body: %s", method, path, e)
            raise NetworkError(f"Malformed response from {path}") from e

    async def get_coupons(self, user_id: str) -> CouponListResponse:
        """GET /users/{userId}/coupon"""
        return await self._request("GET", f"/users/{user_id}/coupon", CouponListResponse)

    async def validate_coupon(self, user_id: str, code: str, order_amount: int) -> CouponValidationResponse:
        """POST /users/{userId}/coupon; order_amount is in minor units."""
        body = CouponValidationRequest(code=code, order_amount=to_wire(order_amount))
        return await self._request(
            "POST",
            f"/users/{user_id}/coupon",
            CouponValidationResponse,
            json=body.model_dump(mode="json", by_alias=True),
        )

    async def get_wallet(self) -> WalletResponse:
        """GET /wallet"""
        return await self._request("GET", "/wallet", WalletResponse)

    async def create_order(self, request: CreateOrderRequest) -> CreateOrderResponse:
        """POST /payment/order"""
        return await self._request("POST", "/payment/order", CreateOrderResponse, json=request.to_payload())
