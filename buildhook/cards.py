"""Card assembly for started, completed and custom-message notifications."""

from __future__ import annotations

import json
import logging
import time
from typing import Callable, Optional

from .facts import FactsBuilder
from .host import BuildRecordError, BuildRun, RecordUrlProvider, UrlProvider
from .models import Card, MessageParameters, PotentialAction, Section
from .status import classify_status, resolve_failing_since

LOGGER = logging.getLogger(__name__)

BUILD_PRONOUN = "Build"
CHANGE_REQUEST_PRONOUN = "Change Request"


def _view_header(pronoun: str) -> str:
    return f"View {pronoun}"


def _now_millis() -> int:
    return int(time.time() * 1000)


class CardFactory:
    """Build the card for one event of one build.

    Every public method starts from a fresh ``FactsBuilder``; the factory holds
    no per-card state, so a card is fully built before any dispatch starts.
    """

    def __init__(
        self,
        run: BuildRun,
        log: logging.Logger | logging.LoggerAdapter = LOGGER,
        url_provider: UrlProvider | None = None,
        clock: Callable[[], int] = _now_millis,
    ):
        self.run = run
        self.log = log
        self.url_provider = url_provider or RecordUrlProvider()
        self.clock = clock

    # -- card shapes -------------------------------------------------------

    def started_card(self, theme_color: Optional[str] = None) -> Card:
        facts = FactsBuilder()
        facts.add_status_started()
        facts.add_start_time(self.run)
        facts.add_remarks(self.run.get_causes())
        self._add_scm_details(facts)

        job = self.run.job_display_name
        summary = f"{job}: Build #{self.run.number} Started"
        return self._finish(
            facts,
            title=f"Update from {job}.",
            subtitle=f"Latest status of build #{self.run.number}",
            summary=summary,
            theme_color=theme_color,
        )

    def completed_card(self, theme_color: Optional[str] = None) -> Card:
        run = self.run
        previous = run.previous_build
        classification = classify_status(
            run.result,
            previous.result if previous is not None else None,
            resolve_failing_since(run),
            run.start_time_millis,
            run.duration_millis,
            now_millis=self.clock(),
        )

        facts = FactsBuilder()
        facts.add_status(classification.status)
        facts.add_start_time(run)
        facts.add_completion_time(run)
        facts.add_tests(run.get_test_summary())
        if classification.back_to_normal_millis is not None:
            facts.add_back_to_normal_time(classification.back_to_normal_millis)
        if classification.failing_since_build is not None:
            facts.add_failing_since_build(classification.failing_since_build)
            facts.add_failing_since_time(classification.failing_since_time_millis)
        facts.add_remarks(run.get_causes())
        self._add_scm_details(facts)

        job = run.job_display_name
        return self._finish(
            facts,
            title=f"Update from {job}.",
            subtitle=f"Latest status of build #{run.number}",
            summary=f"{job}: Build #{run.number}{classification.summary_suffix}",
            theme_color=theme_color or classification.theme_color,
        )

    def message_card(self, params: MessageParameters) -> Card:
        """Card for a pipeline step; falls back to started/completed without a message."""
        if params.message and params.message.strip():
            facts = FactsBuilder()
            if params.status is not None:
                facts.add_status(params.status)
            else:
                facts.add_status_running()

            job = self.run.job_display_name
            return self._finish(
                facts,
                title=f"Message from {job}, Build #{self.run.number}",
                subtitle=params.message,
                summary=f"{job}: Build #{self.run.number} Status",
                theme_color=params.color,
            )
        if params.status is not None and params.status.lower() == "started":
            return self.started_card(theme_color=params.color)
        return self.completed_card(theme_color=params.color)

    # -- shared pieces -----------------------------------------------------

    def _finish(
        self,
        facts: FactsBuilder,
        title: str,
        subtitle: str,
        summary: str,
        theme_color: Optional[str],
    ) -> Card:
        actions = [
            PotentialAction(_view_header(BUILD_PRONOUN), self.url_provider.get_run_url(self.run))
        ]
        self._add_change_request(facts, actions)

        section = Section(title, subtitle, facts.collect())
        return Card(
            summary=summary,
            sections=[section],
            theme_color=theme_color,
            potential_action=actions,
        )

    def _add_change_request(self, facts: FactsBuilder, actions: list[PotentialAction]) -> None:
        change_request = self.run.change_request
        if change_request is None:
            return

        pronoun = (change_request.pronoun or "").strip() or CHANGE_REQUEST_PRONOUN
        obj = change_request.object_metadata
        if obj is not None:
            actions.append(PotentialAction(_view_header(pronoun), obj.object_url))
            facts.add_fact(f"{pronoun} Title", obj.object_display_name)

        contributor = change_request.contributor_metadata
        if contributor is not None:
            name = (contributor.contributor or "").strip()
            display_name = (contributor.contributor_display_name or "").strip()
            if name and display_name:
                author = f"{name} ({display_name})"
            else:
                author = name or display_name
            facts.add_fact(f"{pronoun} Author", author)

    def _add_scm_details(self, facts: FactsBuilder) -> None:
        run = self.run
        try:
            facts.add_culprits(run.result, run.get_culprits())
        except BuildRecordError as exc:
            self.log.error("Exception getting culprits for %s: %s", run, exc, exc_info=True)

        try:
            entries = run.get_change_entries()
        except BuildRecordError as exc:
            self.log.error("Exception getting changesets for %s: %s", run, exc, exc_info=True)
            return
        if not entries:
            return

        files: set[str] = set()
        for entry in entries:
            if entry.affected_files is None:
                self.log.info("Affected files are not supported for change %s", entry.commit_id or entry.author)
                continue
            files.update(entry.affected_files)

        facts.add_developers(entry.author for entry in entries)
        facts.add_number_of_files_changed(files)


# ---------------------------------------------------------------------------
# Wire format
# ---------------------------------------------------------------------------

def card_to_dict(card: Card) -> dict:
    """Card as the webhook expects it. Field names are literal; unset fields are omitted."""
    data: dict = {"summary": card.summary}
    if card.theme_color is not None:
        data["themeColor"] = card.theme_color
    data["sections"] = [
        {
            "markdown": True,
            "activityTitle": s.activity_title,
            "activitySubtitle": s.activity_subtitle,
            "facts": [{"name": f.name, "value": f.value} for f in s.facts],
        }
        for s in card.sections
    ]
    if card.potential_action:
        data["potentialAction"] = [
            {
                "@context": "http://schema.org",
                "@type": "ViewAction",
                "name": a.name,
                "target": [a.target],
            }
            for a in card.potential_action
        ]
    return data


def serialize_card(card: Card) -> str:
    return json.dumps(card_to_dict(card), ensure_ascii=False)
