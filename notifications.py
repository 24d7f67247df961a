"""Notification content for chat webhooks, Teams cards and mail.

The pipeline only produces messages and channel payloads; delivery belongs to
the surrounding system, which drains ``Notifier.outbox``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Callable, Iterable

from config import Settings
from models import BatchRun, MatchCandidate, Record

LOGGER = logging.getLogger(__name__)

BOT_NAME = "名刺SFA Bot"
LOG_ONLY_TARGET = "ログのみ"
ADAPTIVE_CARD_SCHEMA = "http://adaptivecards.io/schemas/adaptive-card.json"

KIND_DUPLICATE = "重複検知"
KIND_DORMANT = "休眠顧客"
KIND_BATCH = "バッチ完了"


@dataclass(frozen=True, slots=True)
class Notification:
    kind: str
    company: str
    person: str
    message: str
    targets: tuple[str, ...]
    payloads: dict[str, Any] = field(default_factory=dict)
    created_at: datetime | None = None


def slack_payload(message: str) -> dict[str, Any]:
    return {"text": message, "username": BOT_NAME, "icon_emoji": ":card_index:"}


def chatwork_body(title: str, message: str) -> str:
    return f"[info][title]{title}[/title]{message}[/info]"


def teams_message(card_body: list[dict[str, Any]]) -> dict[str, Any]:
    """Wrap Adaptive Card body items in the Teams workflow message envelope."""
    return {
        "type": "message",
        "attachments": [
            {
                "contentType": "application/vnd.microsoft.card.adaptive",
                "content": {
                    "$schema": ADAPTIVE_CARD_SCHEMA,
                    "type": "AdaptiveCard",
                    "version": "1.4",
                    "body": card_body,
                },
            }
        ],
    }


def _heading(text: str, color: str | None = None) -> dict[str, Any]:
    block: dict[str, Any] = {"type": "TextBlock", "size": "Medium", "weight": "Bolder", "text": text}
    if color:
        block["color"] = color
    return block


def _facts(pairs: Iterable[tuple[str, str]]) -> dict[str, Any]:
    return {"type": "FactSet", "facts": [{"title": title, "value": value} for title, value in pairs]}


class Notifier:
    """Collects notifications and mirrors them to the store's notification log."""

    def __init__(
        self,
        settings: Settings,
        store: Any | None = None,
        clock: Callable[[], datetime] = lambda: datetime.now(UTC),
    ) -> None:
        self.settings = settings
        self.store = store
        self._clock = clock
        self.outbox: list[Notification] = []

    @property
    def targets(self) -> list[str]:
        names: list[str] = []
        if self.settings.slack_webhook_url:
            names.append("Slack")
        if self.settings.chatwork_api_token and self.settings.chatwork_room_id:
            names.append("Chatwork")
        if self.settings.teams_webhook_url:
            names.append("Teams")
        if self.settings.alert_email_to:
            names.append("Mail")
        return names or [LOG_ONLY_TARGET]

    def duplicate_detected(
        self, company: str, person: str, message: str, matches: Iterable[MatchCandidate]
    ) -> Notification:
        facts = [
            (
                f"{match.company_name} / {match.full_name}",
                f"担当: {match.staff_name or '不明'} / 接触: {match.last_contact or '不明'}",
            )
            for match in matches
        ]
        card = [_heading("重複顧客検知", "Attention"), {"type": "TextBlock", "text": message, "wrap": True}]
        if facts:
            card.append(_facts(facts))

        return self._emit(
            KIND_DUPLICATE,
            company,
            person,
            message,
            card,
            mail_subject="【名刺SFA】重複顧客が検知されました",
        )

    def dormant_alert(self, record: Record, elapsed_days: int) -> Notification:
        message = (
            f"{record.company_name} の {record.full_name} さんは最終接触から "
            f"{elapsed_days} 日経過しています"
        )
        card = [
            _heading("休眠顧客アラート", "Warning"),
            _facts(
                [
                    ("会社名", record.company_name or "-"),
                    ("氏名", record.full_name or "-"),
                    ("Email", record.email or "-"),
                    ("休眠日数", f"{elapsed_days} 日"),
                    ("最終接触日", str(record.last_contact or "-")),
                    ("担当者", record.staff_name or "-"),
                ]
            ),
        ]
        return self._emit(
            KIND_DORMANT,
            record.company_name,
            record.full_name,
            message,
            card,
            mail_subject="【名刺SFA】休眠顧客アラート",
        )

    def batch_finished(self, task_name: str, run: BatchRun) -> Notification:
        message = f"バッチ処理完了: {task_name} ({run.processed}/{run.total} 件処理, エラー {run.errors} 件)"
        card = [
            _heading(f"バッチ処理完了: {task_name}"),
            _facts(
                [
                    ("処理件数", f"{run.processed} / {run.total}"),
                    ("エラー", f"{run.errors} 件"),
                ]
            ),
        ]
        return self._emit(KIND_BATCH, "", "", message, card, mail_subject=f"【名刺SFA】{task_name} 完了")

    def _emit(
        self,
        kind: str,
        company: str,
        person: str,
        message: str,
        card_body: list[dict[str, Any]],
        mail_subject: str,
    ) -> Notification:
        targets = self.targets
        payloads: dict[str, Any] = {}
        if "Slack" in targets:
            payloads["Slack"] = slack_payload(message)
        if "Chatwork" in targets:
            payloads["Chatwork"] = {"body": chatwork_body(f"名刺SFA {kind}", message)}
        if "Teams" in targets:
            payloads["Teams"] = teams_message(card_body)
        if "Mail" in targets:
            payloads["Mail"] = {"to": self.settings.alert_email_to, "subject": mail_subject, "body": message}

        notification = Notification(
            kind=kind,
            company=company,
            person=person,
            message=message,
            targets=tuple(targets),
            payloads=payloads,
            created_at=self._clock(),
        )
        self.outbox.append(notification)
        LOGGER.info("[%s] %s (targets=%s)", kind, message.replace("\n", " / "), ", ".join(targets))

        if self.store is not None:
            try:
                self.store.append_notification(kind, company, person, message, targets, notification.created_at)
            except OSError as exc:
                LOGGER.warning("Failed to write notification log for kind=%s: %s", kind, exc)
        return notification
