"""
Batch notifications

Delivery to email, webhook or Slack lives outside this package; callers plug
it in by implementing ``Notifier``. The default notifier writes to the log.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

from agent_pattern_eval.domain.batch import BatchJob, NotificationConfig
from agent_pattern_eval.domain.enums import NotificationChannel

logger = logging.getLogger(__name__)

START = "start"
COMPLETE = "complete"
ERROR = "error"


class Notifier(Protocol):
    def notify(self, event: str, channel: NotificationChannel, payload: dict[str, Any]) -> None:
        ...


class LoggingNotifier:
    """Writes every notification to the log regardless of channel"""

    def notify(self, event: str, channel: NotificationChannel, payload: dict[str, Any]) -> None:
        level = logging.ERROR if event == ERROR else logging.INFO
        logger.log(level, "[%s] batch %s %s: %s", channel.value, payload.get("job_id"), event, payload)


def job_payload(job: BatchJob, **extra: Any) -> dict[str, Any]:
    payload = {
        "job_id": job.id,
        "name": job.name,
        "status": job.status.value,
        "progress": job.progress.to_dict(),
    }
    if job.results is not None:
        summary = job.results.summary
        payload["summary"] = {
            "total_tests": summary.total_tests,
            "passed_tests": summary.passed_tests,
            "error_tests": summary.error_tests,
            "skipped_tests": summary.skipped_tests,
            "success_rate": summary.success_rate,
        }
    payload.update(extra)
    return payload


def dispatch(notifier: Notifier, config: NotificationConfig, event: str, payload: dict[str, Any]) -> None:
    """
    Send one event to every configured channel, if the config wants it

    A failing notifier is logged and never propagates into the batch.
    """
    wanted = {START: config.on_start, COMPLETE: config.on_complete, ERROR: config.on_error}[event]
    if not wanted:
        return
    for channel in config.channels:
        routed = dict(payload)
        if channel == NotificationChannel.WEBHOOK and config.webhook_url:
            routed["webhook_url"] = config.webhook_url
        elif channel == NotificationChannel.EMAIL and config.email_recipients:
            routed["email_recipients"] = list(config.email_recipients)
        elif channel == NotificationChannel.SLACK and config.slack_channel:
            routed["slack_channel"] = config.slack_channel
        try:
            notifier.notify(event, channel, routed)
        except Exception as e:
            logger.warning("Notifier failed for %s via %s: %r", event, channel.value, e)
