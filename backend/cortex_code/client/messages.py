"""User-facing strings for the chat client, in English and Arabic."""

from __future__ import annotations

from typing import Literal

LocaleCode = Literal["en", "ar"]

DEFAULT_LOCALE: LocaleCode = "en"

MESSAGES: dict[str, dict[str, str]] = {
    "en": {
        "rate_limit": "**You have reached the free usage limit.**\n\nPlease try again later.",
        "server_error": "Sorry, an unexpected error occurred on the server.",
        "server_error_detail": "Sorry, an unexpected error occurred on the server.\n\n> {detail}",
        "no_response": "Sorry, no response was received.",
        "image_title": "Image analysis",
        "attachment_limit": "You can attach at most {limit} images to one message.",
        "not_an_image": "Only image files can be attached.",
        "unreadable_image": "The image file could not be read.",
        "copy": "Copy",
        "regenerate_title": "Regenerate response",
        "regenerate_text": "This response and every message after it will be deleted. Continue?",
        "edit_title": "Edit message",
        "edit_text": "Enter the new text:",
        "delete_turn_title": "Delete message",
        "delete_turn_text": "Delete this message and the assistant's reply to it?",
        "rename_title": "Rename conversation",
        "rename_text": "Enter the new title:",
        "delete_chat_title": "Delete conversation",
        "delete_chat_text": "Are you sure? This conversation will be deleted entirely.",
    },
    "ar": {
        "rate_limit": "**لقد وصلت إلى حد الاستخدام المجاني.**\n\nيرجى المحاولة مرة أخرى لاحقًا.",
        "server_error": "عذرًا، حدث خطأ غير متوقع من الخادم.",
        "server_error_detail": "عذرًا، حدث خطأ غير متوقع من الخادم.\n\n> {detail}",
        "no_response": "عذرًا، لم يتم استلام رد.",
        "image_title": "تحليل الصورة",
        "attachment_limit": "يمكنك إرفاق {limit} صور كحد أقصى في الرسالة الواحدة.",
        "not_an_image": "يمكن إرفاق ملفات الصور فقط.",
        "unreadable_image": "تعذرت قراءة ملف الصورة.",
        "copy": "نسخ",
        "regenerate_title": "إعادة توليد الإجابة",
        "regenerate_text": "سيتم حذف هذه الإجابة وكل الرسائل التالية. هل تريد المتابعة؟",
        "edit_title": "تعديل الرسالة",
        "edit_text": "أدخل النص الجديد:",
        "delete_turn_title": "حذف الرسالة",
        "delete_turn_text": "هل أنت متأكد من حذف هذه الرسالة ورد الذكاء الاصطناعي عليها؟",
        "rename_title": "تعديل العنوان",
        "rename_text": "أدخل العنوان الجديد:",
        "delete_chat_title": "حذف المحادثة",
        "delete_chat_text": "هل أنت متأكد؟ سيتم حذف هذه المحادثة بالكامل.",
    },
}


def message(key: str, locale: str = DEFAULT_LOCALE, **kwargs) -> str:
    """Look up a string, falling back to English for unknown locales."""
    catalog = MESSAGES.get(locale, MESSAGES[DEFAULT_LOCALE])
    text = catalog[key]
    return text.format(**kwargs) if kwargs else text
