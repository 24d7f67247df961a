"""Re-engagement email drafts for dormant contacts."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import tzinfo

from api_client import GeminiClient
from errors import ApiError
from models import Record
from staleness import format_local

LOGGER = logging.getLogger(__name__)

SUBJECT_MAX_LEN = 60
STAFF_PLACEHOLDER = "（担当者名）"

EMAIL_SYSTEM_PROMPT = """あなたは、日本のBtoB営業のプロフェッショナルです。
休眠顧客（しばらく連絡していなかった取引先）に対して、
「ご無沙汰しております」から始まる自然な再接触メールを作成してください。
業界の最新ニュースを自然なフックとして織り込み、押し付けがましくないトーンで、
署名は含めず、全体で200〜400文字程度にしてください。"""


@dataclass(frozen=True, slots=True)
class EmailDraft:
    subject: str
    body: str
    generated: bool = True


def fallback_subject(record: Record) -> str:
    return f"{record.company_name} {record.full_name}様 ご無沙汰しております"


def fallback_body(record: Record) -> str:
    staff = record.staff_name or STAFF_PLACEHOLDER
    return (
        f"{record.full_name} 様\n\n"
        f"ご無沙汰しております。{staff}でございます。\n\n"
        "以前はお忙しい中お時間をいただき、誠にありがとうございました。\n"
        "その後、御社のご状況はいかがでしょうか。\n\n"
        "もしよろしければ、改めてお話をお伺いする機会をいただけますと幸いです。\n"
        "ご都合の良いタイミングがございましたら、お気軽にご連絡くださいませ。\n\n"
        "何卒よろしくお願いいたします。"
    )


def generate_revival_email(
    client: GeminiClient, record: Record, elapsed_days: int, news: str, tz: tzinfo
) -> EmailDraft:
    """Generate a draft; any API failure yields the fixed fallback letter."""
    last_text = format_local(record.last_contact, tz, "%Y年%m月%d日") or "不明"

    user_prompt = f"""以下の情報を元に、休眠顧客への再接触メールを作成してください。

【顧客情報】
- 会社名: {record.company_name}
- 氏名: {record.full_name} 様
- 役職: {record.title or '不明'}
- 最終接触日: {last_text}
- 経過日数: {elapsed_days}日
- 担当者名: {record.staff_name or STAFF_PLACEHOLDER}

【業界の最新ニュース/トレンド】
{news or '特になし'}

以下のJSON形式で出力してください:
{{"subject": "メール件名（30文字以内）", "body": "メール本文（200〜400文字）"}}"""

    try:
        result = client.generate_json(EMAIL_SYSTEM_PROMPT, user_prompt)
    except ApiError as exc:
        LOGGER.warning("Email generation failed for company=%s, using fallback: %s", record.company_name, exc)
        return EmailDraft(subject=fallback_subject(record), body=fallback_body(record), generated=False)

    if not isinstance(result, dict):
        result = {}
    subject = result.get("subject") if isinstance(result.get("subject"), str) else ""
    body = result.get("body") if isinstance(result.get("body"), str) else ""
    return EmailDraft(
        subject=subject.strip()[:SUBJECT_MAX_LEN] or fallback_subject(record),
        body=body.strip() or fallback_body(record),
        generated=bool(subject.strip() and body.strip()),
    )
