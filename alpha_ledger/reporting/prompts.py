"""
Prompt templates for the generative-AI commentary.

All prompts are Traditional Chinese.  Builders are pure string functions so
they can be tested without network access:

  build_market_briefing_prompt(records)           — up to 5 top-scored names
  build_stock_analysis_prompt(record, advice)     — one instrument in detail
  build_intelligence_report_prompt(kind, codes)   — daily / weekly report
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from alpha_ledger.models.market import MarketRecord
from alpha_ledger.models.recommendation import Recommendation
from alpha_ledger.reporting.formatters import format_pct, format_price

MAX_BRIEFING_RECORDS = 5


class ReportKind(str, Enum):
    DAILY  = "daily"
    WEEKLY = "weekly"


def summarize_record(record: MarketRecord) -> str:
    """One-line summary used inside prompts."""
    score = f"{record.ai_score:.0f}" if record.ai_score is not None else "無"
    parts = [
        f"{record.name}（{record.code}）",
        f"收盤 {format_price(record.close_price)}",
        f"AI 評分 {score}",
        f"ROE {format_pct(record.roe)}",
        f"營收年增 {format_pct(record.revenue_yoy)}",
    ]
    if record.technical_signal:
        parts.append(f"技術訊號「{record.technical_signal}」")
    return "、".join(parts)


def build_market_briefing_prompt(
    records: list[MarketRecord],
    limit: int = MAX_BRIEFING_RECORDS,
) -> str:
    """Briefing over the highest-scored records (at most ``limit``, capped at 5)."""
    limit = max(1, min(limit, MAX_BRIEFING_RECORDS))
    top = sorted(records, key=lambda r: -r.score)[:limit]
    if top:
        lines = "\n".join(f"{i}. {summarize_record(r)}" for i, r in enumerate(top, start=1))
    else:
        lines = "（今日無分析資料）"

    return (
        "你是一位專業的台股投資分析師。\n"
        "以下是今日 AI 評分最高的標的：\n"
        f"{lines}\n\n"
        "請以繁體中文撰寫一份精簡的市場晨報：\n"
        "1. 總結今日強勢族群與資金流向。\n"
        "2. 逐一點評上列標的的進場理由與主要風險。\n"
        "3. 最後給出一句今日操作紀律提醒。\n"
        "語氣專業、精準，避免空泛形容詞。"
    )


def build_stock_analysis_prompt(
    record: MarketRecord,
    advice: Optional[Recommendation] = None,
) -> str:
    """Deep-dive prompt for one instrument, optionally with the engine's plan."""
    plan = ""
    if advice is not None:
        plan = (
            "\n系統量化建議：\n"
            f"- 操作模式：{advice.confidence_label}\n"
            f"- 進場：{advice.entry_hint.label} {format_price(advice.entry_hint.price)}\n"
            f"- 目標：{format_price(advice.exit_hint.price)}\n"
            f"- 停損：{format_price(advice.stop_hint.price)}\n"
        )
        if advice.risk_flag is not None:
            plan += f"- 風險提示：{advice.risk_flag.value}\n"

    comment = f"\n既有分析摘要：「{record.ai_comment}」\n" if record.ai_comment else ""

    return (
        "你是一位冷靜、重視風控的操盤經理人。\n"
        f"請針對 {summarize_record(record)} 進行深度分析。\n"
        f"本益比 {format_price(record.pe_ratio)}、量比 {record.volume_ratio:.2f}、"
        f"波動度 {record.volatility:.2f}%。\n"
        f"{comment}{plan}\n"
        "請以繁體中文回答：\n"
        "1. 基本面與技術面是否共振？\n"
        "2. 上述進出場與停損價位是否合理？如需調整請說明。\n"
        "3. 未來一週最需要留意的事件或風險。\n"
        "紀律大於一切，請給出明確結論。"
    )


def build_intelligence_report_prompt(
    kind: ReportKind,
    portfolio_codes: list[str],
) -> str:
    """Daily / weekly market intelligence report over the user's holdings."""
    scope = "本週市場總結與下週展望" if kind is ReportKind.WEEKLY else "今日市場動態與即時獲利情報"
    watched = "、".join(portfolio_codes) if portfolio_codes else "（尚無持股）"

    return (
        "你是 Alpha Ledger 首席金融情報官（Chief Intelligence Officer）。\n"
        f"請針對{scope}產出機密報告。\n\n"
        "任務重點：\n"
        "1. 【全網偵蒐】：搜尋並總結最新的產業消息、法說會重點與市場熱門題材。\n"
        f"2. 【持股健檢】：用戶目前關注股票：{watched}。請特別針對這些標的尋找最新情報。\n"
        "3. 【策略方向】：給出 3 個值得注意的題材或操作方向。\n"
        "4. 【語氣】：專業、冷靜，像是在對基金經理人進行口頭報告。\n\n"
        "請產出繁體中文報告，格式要像是一份情報檔案。"
    )
