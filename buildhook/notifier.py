"""Webhook notifications for build lifecycle events."""

from __future__ import annotations

import logging
from typing import Optional, Sequence

import httpx

from .cards import CardFactory, serialize_card
from .dispatcher import DEFAULT_MAX_PENDING, DEFAULT_MAX_WORKERS, Dispatcher, DispatchRejected, describe_failure
from .host import BuildRun, EnvironmentMacroEngine, MacroEngine, UrlProvider, expand_environment
from .models import Card, EventKind, MessageParameters, RunKind, Webhook
from .rules import should_notify

LOGGER = logging.getLogger(__name__)


class WebhookNotifier:
    """Notify the job's webhooks about one build.

    ``webhooks`` is the job-level configuration; None means the job has none.
    """

    def __init__(
        self,
        run: BuildRun,
        webhooks: Optional[Sequence[Webhook]],
        macro_engine: Optional[MacroEngine] = None,
        url_provider: Optional[UrlProvider] = None,
        client: Optional[httpx.AsyncClient] = None,
        max_workers: int = DEFAULT_MAX_WORKERS,
        max_pending: int = DEFAULT_MAX_PENDING,
    ):
        self.run = run
        self.webhooks = list(webhooks) if webhooks is not None else None
        self.macro_engine = macro_engine or EnvironmentMacroEngine()
        self.client = client
        self.max_workers = max_workers
        self.max_pending = max_pending
        self.log = logging.LoggerAdapter(LOGGER, {"build": str(run)})
        self.cards = CardFactory(run, log=self.log, url_provider=url_provider)

    async def on_build_started(self, is_from_pre_build: bool) -> Optional[Card]:
        is_freestyle = self.run.kind == RunKind.FREESTYLE
        if is_freestyle != is_from_pre_build:
            self.log.info("Build started card not generated.")
            return None

        card = self.cards.started_card()
        if self.webhooks is None:
            return card

        targets = [w for w in self.webhooks if await should_notify(w, EventKind.STARTED, self.run, self.macro_engine)]
        await self._send(targets, card)
        return card

    async def on_build_completed(self) -> Card:
        card = self.cards.completed_card()
        if self.webhooks is None:
            return card

        targets = [w for w in self.webhooks if await should_notify(w, EventKind.COMPLETED, self.run, self.macro_engine)]
        await self._send(targets, card)
        return card

    async def on_custom_message(self, params: MessageParameters) -> Card:
        card = self.cards.message_card(params)
        if self.webhooks is not None:
            targets = [w for w in self.webhooks if await should_notify(w, EventKind.CUSTOM, self.run, self.macro_engine)]
        elif params.webhook_url:
            targets = [Webhook(url=params.webhook_url)]
        else:
            self.log.info("No webhooks to notify")
            targets = []
        await self._send(targets, card)
        return card

    async def _send(self, webhooks: Sequence[Webhook], card: Card) -> None:
        if not webhooks:
            return
        payload = serialize_card(card)
        environment = self.run.get_environment()
        async with Dispatcher(
            client=self.client,
            max_workers=self.max_workers,
            max_pending=self.max_pending,
            log=self.log,
        ) as dispatcher:
            for webhook in webhooks:
                try:
                    dispatcher.submit(webhook, expand_environment(webhook.url, environment), payload)
                except DispatchRejected as exc:
                    self.log.warning(describe_failure(webhook, exc))
