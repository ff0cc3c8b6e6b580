from __future__ import annotations

import asyncio
import logging
from typing import Protocol

import httpx

from storefront.db import settings
from storefront.services.order_message import (
    admin_email_subject,
    customer_email_subject,
    format_admin_email,
    format_customer_email,
    format_status_update_email,
    format_telegram_message,
    status_update_email_subject,
)
from storefront.services.reconciler import OrderSnapshot

logger = logging.getLogger(__name__)


class NotificationChannel(Protocol):
    name: str

    @property
    def enabled(self) -> bool: ...

    async def send(self, snapshot: OrderSnapshot) -> None: ...


class _EmailChannel:
    name = "email"

    def __init__(
        self,
        *,
        api_url: str | None = None,
        api_key: str | None = None,
        sender: str | None = None,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_url = api_url or settings.email_api_url
        self.api_key = api_key if api_key is not None else settings.email_api_key
        self.sender = sender or settings.email_from
        self.timeout = timeout
        self._transport = transport

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    async def _send_email(self, *, to: str, subject: str, html: str) -> None:
        payload = {"from": self.sender, "to": [to], "subject": subject, "html": html}
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await client.post(
                self.api_url,
                json=payload,
                headers={"Authorization": f"Bearer {self.api_key}"},
            )
            response.raise_for_status()


class CustomerEmailChannel(_EmailChannel):
    name = "customer_email"

    def __init__(self, *, store_name: str | None = None, **kwargs):
        super().__init__(**kwargs)
        self.store_name = store_name or settings.store_name

    async def send(self, snapshot: OrderSnapshot) -> None:
        await self._send_email(
            to=snapshot.customer_email,
            subject=customer_email_subject(snapshot, self.store_name),
            html=format_customer_email(snapshot, self.store_name),
        )
        logger.info("Customer email sent order_number=%s", snapshot.order_number)


class AdminEmailChannel(_EmailChannel):
    name = "admin_email"

    def __init__(self, *, admin_email: str | None = None, **kwargs):
        super().__init__(**kwargs)
        self.admin_email = admin_email if admin_email is not None else settings.admin_email

    @property
    def enabled(self) -> bool:
        return bool(self.api_key and self.admin_email)

    async def send(self, snapshot: OrderSnapshot) -> None:
        await self._send_email(
            to=self.admin_email,
            subject=admin_email_subject(snapshot),
            html=format_admin_email(snapshot),
        )
        logger.info("Admin email sent order_number=%s", snapshot.order_number)


class StatusUpdateEmailChannel(CustomerEmailChannel):
    name = "status_email"

    async def send(self, snapshot: OrderSnapshot) -> None:
        await self._send_email(
            to=snapshot.customer_email,
            subject=status_update_email_subject(snapshot),
            html=format_status_update_email(snapshot, self.store_name),
        )
        logger.info(
            "Status update email sent order_number=%s status=%s", snapshot.order_number, snapshot.status
        )


class TelegramChannel:
    name = "telegram"

    def __init__(
        self,
        *,
        bot_token: str | None = None,
        chat_id: str | None = None,
        attempts: int = 3,
        backoffs: tuple[float, ...] = (0.5, 1.0),
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.bot_token = bot_token if bot_token is not None else settings.telegram_bot_token
        self.chat_id = chat_id if chat_id is not None else settings.telegram_chat_id
        self.attempts = attempts
        self.backoffs = backoffs
        self._transport = transport

    @property
    def enabled(self) -> bool:
        return bool(self.bot_token and self.chat_id)

    async def send(self, snapshot: OrderSnapshot) -> None:
        url = f"https://api.telegram.org/bot{self.bot_token}/sendMessage"
        payload = {
            "chat_id": self.chat_id,
            "text": format_telegram_message(snapshot),
            "parse_mode": "Markdown",
            "disable_web_page_preview": True,
        }
        last_error: Exception | None = None
        for attempt in range(self.attempts):
            try:
                async with httpx.AsyncClient(timeout=10, transport=self._transport) as client:
                    response = await client.post(url, json=payload)
                    response.raise_for_status()
                    logger.info("Telegram alert sent order_number=%s", snapshot.order_number)
                    return
            except httpx.HTTPStatusError as exc:
                logger.warning(
                    "Telegram send failed (attempt %s) status=%s",
                    attempt + 1,
                    exc.response.status_code,
                )
                last_error = exc
            except httpx.HTTPError as exc:
                logger.warning("Telegram send failed (attempt %s) error=%s", attempt + 1, exc)
                last_error = exc
            if attempt < len(self.backoffs):
                await asyncio.sleep(self.backoffs[attempt])
        if last_error is not None:
            raise last_error


async def _deliver(channel: NotificationChannel, snapshot: OrderSnapshot) -> bool:
    try:
        await channel.send(snapshot)
        return True
    except Exception:
        logger.exception(
            "Notification channel failed channel=%s order_number=%s",
            channel.name,
            snapshot.order_number,
        )
        return False


async def _fan_out(
    event: str,
    snapshot: OrderSnapshot,
    channels: list[NotificationChannel],
    timeout: float | None,
) -> dict[str, bool]:
    limit = timeout if timeout is not None else settings.notification_timeout_seconds
    results: dict[str, bool] = {}
    active: list[NotificationChannel] = []
    for channel in channels:
        if channel.enabled:
            active.append(channel)
        else:
            logger.info("Notification skipped event=%s channel=%s reason=not_configured", event, channel.name)
            results[channel.name] = False
    if not active:
        return results

    tasks = {channel.name: asyncio.create_task(_deliver(channel, snapshot)) for channel in active}
    done, pending = await asyncio.wait(tasks.values(), timeout=limit)
    for task in pending:
        task.cancel()
    for name, task in tasks.items():
        if task in done:
            results[name] = task.result()
        else:
            logger.warning(
                "Notification channel timed out event=%s channel=%s order_number=%s",
                event,
                name,
                snapshot.order_number,
            )
            results[name] = False
    return results


async def fan_out_order_confirmed(
    snapshot: OrderSnapshot,
    channels: list[NotificationChannel],
    timeout: float | None = None,
) -> dict[str, bool]:
    """Send the confirmation on every enabled channel concurrently.

    Returns ``{channel name: delivered}``. A failing or slow channel never
    affects the others and nothing is raised to the caller.
    """
    return await _fan_out("order_confirmed", snapshot, channels, timeout)


async def fan_out_status_update(
    snapshot: OrderSnapshot,
    channels: list[NotificationChannel],
    timeout: float | None = None,
) -> dict[str, bool]:
    return await _fan_out("status_update", snapshot, channels, timeout)


def get_notification_channels() -> list[NotificationChannel]:
    return [CustomerEmailChannel(), AdminEmailChannel(), TelegramChannel()]


def get_status_update_channels() -> list[NotificationChannel]:
    return [StatusUpdateEmailChannel()]
