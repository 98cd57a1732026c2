"""Per-webhook notification rules: status flags and macro conditions."""

from __future__ import annotations

from typing import Optional

from .host import BuildRun, MacroEngine, MacroEvaluationError
from .models import EventKind, Result, Webhook


def is_status_matched(
    webhook: Webhook,
    result: Optional[Result],
    previous_result: Optional[Result],
) -> bool:
    """Check the build outcome against the webhook's notify flags.

    A success after a failed or unstable build is matched by either
    ``notify_back_to_normal`` or ``notify_success``.
    """
    if previous_result is None:
        previous_result = Result.SUCCESS
    previous_bad = previous_result in (Result.FAILURE, Result.UNSTABLE)

    return (
        (result == Result.ABORTED and webhook.notify_aborted)
        or (result == Result.FAILURE and previous_result != Result.FAILURE and webhook.notify_failure)
        or (result == Result.FAILURE and previous_result == Result.FAILURE and webhook.notify_repeated_failure)
        or (result == Result.NOT_BUILT and webhook.notify_not_built)
        or (result == Result.SUCCESS and previous_bad and webhook.notify_back_to_normal)
        or (result == Result.SUCCESS and webhook.notify_success)
        or (result == Result.UNSTABLE and webhook.notify_unstable)
    )


async def is_at_least_one_rule_matched(
    webhook: Webhook,
    run: BuildRun,
    engine: MacroEngine,
) -> bool:
    """True when any macro expands to its expected value.

    A webhook without macros is unconditional. Expansion errors propagate:
    a broken template is a configuration defect, not a non-match.
    """
    if not webhook.macros:
        return True

    for macro in webhook.macros:
        try:
            evaluated = await engine.expand(run, run.root_dir, macro.template)
        except OSError as exc:
            raise MacroEvaluationError(f"Cannot expand '{macro.template}': {exc}") from exc
        if evaluated == macro.value:
            return True
    return False


async def should_notify(
    webhook: Webhook,
    event: EventKind,
    run: BuildRun,
    engine: MacroEngine,
) -> bool:
    """Dispatch eligibility of one webhook for an event.

    Custom messages go to every webhook. A completed build checks the status
    flags first, so macros of a webhook that would not fire are never expanded.
    """
    if event == EventKind.CUSTOM:
        return True
    if event == EventKind.STARTED:
        return await is_at_least_one_rule_matched(webhook, run, engine) and webhook.start_notification

    previous = run.previous_build
    previous_result = previous.result if previous is not None else Result.SUCCESS
    if not is_status_matched(webhook, run.result, previous_result):
        return False
    return await is_at_least_one_rule_matched(webhook, run, engine)
