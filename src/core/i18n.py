"""
Message catalog for server-rendered text (notifications, flash messages).

translate(key, lang, params) looks the key up in the user's language, falls
back to English, then to the key itself. Params replace {name} placeholders.
"""

import logging

log = logging.getLogger("quoteflow.i18n")

DEFAULT_LANGUAGE = "en"

MESSAGES = {
    "en": {
        "notification_new_quote_title": "New quote received",
        "notification_new_quote_body": "{purchaserName} submitted a quote for RFQ {rfqCode}.",
        "notification_quote_updated_title": "Quote updated",
        "notification_quote_updated_body": "{purchaserName} updated a quote for RFQ {rfqCode}.",
        "notification_quote_accepted_title": "Quote accepted",
        "notification_quote_accepted_body": "Your quote for {productName} on RFQ {rfqCode} was accepted.",
        "notification_quote_withdrawn_title": "Quote withdrawn",
        "notification_quote_withdrawn_body": "{purchaserName} withdrew from {productName} on RFQ {rfqCode}: {reason}",
        "notification_rfq_assigned_title": "New RFQ assigned",
        "notification_rfq_assigned_body": "You have been assigned to RFQ {rfqCode}.",
        "similar_quotes_found": "Similar historical quotes found",
        "status_waiting_for_quote": "Waiting for Quote",
        "status_quotation_in_progress": "Quotation in Progress",
        "status_quotation_completed": "Quotation Completed",
        "status_archived": "Archived",
    },
    "de": {
        "notification_new_quote_title": "Neues Angebot erhalten",
        "notification_new_quote_body": "{purchaserName} hat ein Angebot für Anfrage {rfqCode} abgegeben.",
        "notification_quote_updated_title": "Angebot aktualisiert",
        "notification_quote_updated_body": "{purchaserName} hat ein Angebot für Anfrage {rfqCode} aktualisiert.",
        "notification_quote_accepted_title": "Angebot angenommen",
        "notification_quote_accepted_body": "Ihr Angebot für {productName} zu Anfrage {rfqCode} wurde angenommen.",
        "notification_rfq_assigned_title": "Neue Anfrage zugewiesen",
        "notification_rfq_assigned_body": "Ihnen wurde die Anfrage {rfqCode} zugewiesen.",
        "similar_quotes_found": "Ähnliche frühere Angebote gefunden",
        "status_waiting_for_quote": "Wartet auf Angebot",
        "status_quotation_in_progress": "Angebot in Bearbeitung",
        "status_quotation_completed": "Angebot abgeschlossen",
        "status_archived": "Archiviert",
    },
    "zh": {
        "notification_new_quote_title": "收到新报价",
        "notification_new_quote_body": "{purchaserName} 已为询价单 {rfqCode} 提交报价。",
        "notification_quote_updated_title": "报价已更新",
        "notification_quote_updated_body": "{purchaserName} 已更新询价单 {rfqCode} 的报价。",
        "notification_quote_accepted_title": "报价已接受",
        "notification_quote_accepted_body": "您在询价单 {rfqCode} 中对 {productName} 的报价已被接受。",
        "notification_rfq_assigned_title": "新的询价单",
        "notification_rfq_assigned_body": "您已被分配到询价单 {rfqCode}。",
        "similar_quotes_found": "找到相似的历史报价",
        "status_waiting_for_quote": "等待报价",
        "status_quotation_in_progress": "报价中",
        "status_quotation_completed": "报价完成",
        "status_archived": "已归档",
    },
}


def translate(key: str, lang: str = DEFAULT_LANGUAGE, params: dict = None) -> str:
    catalog = MESSAGES.get(lang) or MESSAGES[DEFAULT_LANGUAGE]
    text = catalog.get(key)
    if text is None:
        text = MESSAGES[DEFAULT_LANGUAGE].get(key)
        if text is None:
            log.debug("Missing message key %s", key)
            text = key
    for name, value in (params or {}).items():
        text = text.replace("{" + name + "}", str(value))
    return text


def status_key(status: str) -> str:
    """'Quotation in Progress' → 'status_quotation_in_progress'."""
    return "status_" + status.lower().replace(" ", "_")
