"""
Code provisioning through the booking API.

CodeProvisioner manufactures redeemable codes by running four dependent
calls per order:

  1. create cart    -> cart id
  2. prepare        -> same cart id
  3. book free      -> ticket id
  4. ticket codes   -> list of codes

The sequence is repeated ``orders`` times and the codes are concatenated in
order of submission. The first failure aborts provisioning: no retry, no
partial pool.
"""
from __future__ import annotations

import asyncio
import itertools
from enum import Enum
from typing import Any, TypeVar

import httpx
import structlog
from pydantic import TypeAdapter, ValidationError

from codes_validation.config import PARTNER_ID
from codes_validation.exceptions import InvalidArgumentError, ProvisioningError
from codes_validation.schemas import BookingResponse, CartCreateRequest, CartResponse, CodeRecord

logger = structlog.get_logger(__name__)

T = TypeVar("T")

CART_CREATE_PATH = "/b2b/2.0/partners/{partner_id}/carts/"
CART_PREPARE_PATH = "/b2b/2.0/partners/{partner_id}/carts/{cart_id}/prepare/"
CART_BOOK_FREE_PATH = "/b2b/2.0/partners/{partner_id}/carts/{cart_id}/book-free/"
TICKET_CODES_PATH = "/b2b/2.0/partners/{partner_id}/tickets/{ticket_id}/codes/"

_CART = TypeAdapter(CartResponse)
_BOOKING = TypeAdapter(BookingResponse)
_CODE_RECORDS = TypeAdapter(list[CodeRecord])


class OrderStage(str, Enum):
    """Progress of a single order through the booking workflow."""

    IDLE = "idle"
    CART_CREATED = "cart_created"
    BOOKING_PREPARED = "booking_prepared"
    BOOKED = "booked"
    CODES_FETCHED = "codes_fetched"
    ABORTED = "aborted"


class CodeProvisioner:
    """Drives the booking workflow with an already configured ``httpx.AsyncClient``."""

    def __init__(self, client: httpx.AsyncClient, partner_id: int = PARTNER_ID) -> None:
        self._client = client
        self._partner_id = partner_id

    # ------------------------------------------------------------------
    # Workflow steps
    # ------------------------------------------------------------------

    async def create_cart(
        self, session_id: int, tickets_per_order: int, order_index: int | None = None
    ) -> int | str:
        body = CartCreateRequest(session_id=session_id, tickets=tickets_per_order)
        response = await self._request(
            "create_cart",
            "POST",
            CART_CREATE_PATH.format(partner_id=self._partner_id),
            order_index,
            json=body.model_dump(),
        )
        return self._parse("create_cart", response, _CART, order_index).id

    async def prepare_booking(self, cart_id: int | str, order_index: int | None = None) -> int | str:
        await self._request(
            "prepare_booking",
            "POST",
            CART_PREPARE_PATH.format(partner_id=self._partner_id, cart_id=cart_id),
            order_index,
        )
        return cart_id

    async def book_cart(self, cart_id: int | str, order_index: int | None = None) -> int | str:
        response = await self._request(
            "book_cart",
            "POST",
            CART_BOOK_FREE_PATH.format(partner_id=self._partner_id, cart_id=cart_id),
            order_index,
        )
        return self._parse("book_cart", response, _BOOKING, order_index).ticket_id

    async def fetch_codes(self, ticket_id: int | str, order_index: int | None = None) -> list[str]:
        response = await self._request(
            "fetch_codes",
            "GET",
            TICKET_CODES_PATH.format(partner_id=self._partner_id, ticket_id=ticket_id),
            order_index,
        )
        records = self._parse("fetch_codes", response, _CODE_RECORDS, order_index)
        return [record.code for record in records]

    # ------------------------------------------------------------------
    # Orchestration
    # ------------------------------------------------------------------

    async def provision(
        self,
        session_id: int,
        orders: int,
        tickets_per_order: int,
        concurrency: int = 1,
    ) -> list[str]:
        """
        Run the workflow ``orders`` times and return the concatenated codes.

        With ``concurrency > 1`` up to that many orders are in flight at once;
        the result keeps order-of-submission concatenation either way.
        """
        if orders < 1:
            raise InvalidArgumentError(f"orders must be >= 1, got {orders}")
        if tickets_per_order < 1:
            raise InvalidArgumentError(f"tickets_per_order must be >= 1, got {tickets_per_order}")
        if concurrency < 1:
            raise InvalidArgumentError(f"concurrency must be >= 1, got {concurrency}")

        logger.info(
            "provision_started",
            session_id=session_id,
            orders=orders,
            tickets_per_order=tickets_per_order,
            concurrency=concurrency,
        )

        if concurrency == 1:
            batches = [
                await self._provision_order(session_id, tickets_per_order, index)
                for index in range(1, orders + 1)
            ]
        else:
            semaphore = asyncio.Semaphore(concurrency)

            async def bounded(index: int) -> list[str]:
                async with semaphore:
                    return await self._provision_order(session_id, tickets_per_order, index)

            tasks = [asyncio.ensure_future(bounded(i)) for i in range(1, orders + 1)]
            done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
            # Stop in-flight orders so no cart is booked after an abort.
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
            for task in tasks:
                if task in done and task.exception() is not None:
                    if pending:
                        logger.warning("provision_orders_cancelled", cancelled=len(pending))
                    raise task.exception()
            batches = [task.result() for task in tasks]

        pool = list(itertools.chain.from_iterable(batches))
        logger.info("provision_finished", orders=orders, codes=len(pool))
        return pool

    async def _provision_order(self, session_id: int, tickets_per_order: int, order_index: int) -> list[str]:
        stage = OrderStage.IDLE
        try:
            cart_id = await self.create_cart(session_id, tickets_per_order, order_index)
            stage = OrderStage.CART_CREATED
            cart_id = await self.prepare_booking(cart_id, order_index)
            stage = OrderStage.BOOKING_PREPARED
            ticket_id = await self.book_cart(cart_id, order_index)
            stage = OrderStage.BOOKED
            codes = await self.fetch_codes(ticket_id, order_index)
            stage = OrderStage.CODES_FETCHED
        except ProvisioningError as exc:
            last_stage, stage = stage, OrderStage.ABORTED
            logger.error(
                "provision_order_aborted",
                order_index=order_index,
                stage=stage.value,
                last_stage=last_stage.value,
                step=exc.step,
                status_code=exc.status_code,
            )
            raise

        logger.info("provision_order_done", order_index=order_index, stage=stage.value, codes=len(codes))
        return codes

    # ------------------------------------------------------------------
    # HTTP helpers
    # ------------------------------------------------------------------

    async def _request(
        self,
        step: str,
        method: str,
        path: str,
        order_index: int | None,
        json: dict[str, Any] | None = None,
    ) -> httpx.Response:
        try:
            response = await self._client.request(method, path, json=json)
        except httpx.HTTPError as exc:
            raise ProvisioningError(
                f"request failed: {exc}", step=step, order_index=order_index
            ) from exc

        if not response.is_success:
            raise ProvisioningError(
                "unexpected response status",
                step=step,
                order_index=order_index,
                status_code=response.status_code,
                body=response.text,
            )
        return response

    @staticmethod
    def _parse(step: str, response: httpx.Response, adapter: TypeAdapter[T], order_index: int | None) -> T:
        try:
            return adapter.validate_json(response.content)
        except ValidationError as exc:
            raise ProvisioningError(
                f"malformed response payload ({exc.error_count()} error(s))",
                step=step,
                order_index=order_index,
                status_code=response.status_code,
                body=response.text,
            ) from exc
