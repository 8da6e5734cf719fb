from __future__ import annotations

from typing import Any, Dict, List, Mapping

from onboarding.models import ContactInfo, GenerationProfile, Service
from onboarding.palette import is_dark


FORMAL_INDUSTRIES = ("legal", "finance", "healthcare", "consulting", "insurance", "government")
FRIENDLY_INDUSTRIES = ("restaurant", "cafe", "fitness-gym", "beauty-spa", "entertainment", "travel")

INDUSTRY_EMOJI: Dict[str, str] = {
    "restaurant": "🍽️",
    "cafe": "☕",
    "healthcare": "🏥",
    "legal": "⚖️",
    "finance": "💼",
    "fitness-gym": "💪",
    "beauty-spa": "💆",
    "ecommerce": "🛒",
}

GENERAL_INSTRUCTIONS = {
    "es": (
        "=== INSTRUCCIONES GENERALES ===\n\n"
        "CAPACIDADES:\n"
        "- Proporcionar información sobre el negocio\n"
        "- Responder preguntas frecuentes\n"
        "- Ayudar a contactar con el equipo\n"
        "- Informar sobre servicios disponibles\n\n"
        "COMPORTAMIENTO:\n"
        "- Sé amable, profesional y servicial\n"
        "- Si no tienes información específica, ofrece conectar con un humano\n"
        "- Responde en el mismo idioma que usa el cliente\n"
        "- Mantén las respuestas claras y concisas"
    ),
    "en": (
        "=== GENERAL INSTRUCTIONS ===\n\n"
        "CAPABILITIES:\n"
        "- Provide information about the business\n"
        "- Answer frequently asked questions\n"
        "- Help contact the team\n"
        "- Inform about available services\n\n"
        "BEHAVIOR:\n"
        "- Be friendly, professional and helpful\n"
        "- If you don't have specific information, offer to connect with a human\n"
        "- Respond in the same language the customer uses\n"
        "- Keep responses clear and concise"
    ),
}

STORE_INSTRUCTIONS = {
    "es": (
        "\n\n=== INSTRUCCIONES DE ECOMMERCE ===\n\n"
        "- Ayuda a los clientes a encontrar productos, precios y disponibilidad\n"
        "- Para consultar un pedido solicita el número de orden o el email de compra\n"
        "- NO proceses reembolsos ni modifiques pedidos, solo informa el proceso"
    ),
    "en": (
        "\n\n=== ECOMMERCE INSTRUCTIONS ===\n\n"
        "- Help customers find products, prices and availability\n"
        "- To look up an order, ask for the order number or purchase email\n"
        "- DO NOT process refunds or modify orders, only explain the process"
    ),
}

GENERAL_FAQS = {
    "es": [
        ("def-1", "¿Cuál es el horario de atención?", "Nuestro horario puede variar. ¿Te gustaría que te proporcione los horarios actualizados?"),
        ("def-2", "¿Cómo puedo contactarlos?", "Puedes contactarnos por email, teléfono, o a través de este chat. ¿Cuál prefieres?"),
        ("def-3", "¿Dónde están ubicados?", "Nuestra ubicación está disponible en la sección de contacto de nuestro sitio."),
    ],
    "en": [
        ("def-1", "What are your business hours?", "Our hours may vary. Would you like me to provide the updated schedule?"),
        ("def-2", "How can I contact you?", "You can contact us by email, phone, or through this chat. Which do you prefer?"),
        ("def-3", "Where are you located?", "Our location is available in the contact section of our site."),
    ],
}

STORE_FAQS = {
    "es": [
        ("ecom-1", "¿Cómo puedo rastrear mi pedido?", "Con el número de seguimiento que recibiste por email, o dame tu número de orden y te ayudo."),
        ("ecom-2", "¿Cuál es la política de devoluciones?", "Aceptamos devoluciones dentro de los 30 días posteriores a la compra."),
    ],
    "en": [
        ("ecom-1", "How can I track my order?", "Use the tracking number from your confirmation email, or give me your order number and I'll help."),
        ("ecom-2", "What is your return policy?", "We accept returns within 30 days of purchase."),
    ],
}

QUICK_REPLIES = {
    "es": [("qr-def-1", "Información", "ℹ️"), ("qr-def-2", "Contacto", "📞"), ("qr-def-3", "Horarios", "🕐")],
    "en": [("qr-def-1", "Information", "ℹ️"), ("qr-def-2", "Contact", "📞"), ("qr-def-3", "Hours", "🕐")],
}


def determine_tone(industry: str) -> str:
    if industry in FORMAL_INDUSTRIES:
        return "Formal"
    if industry in FRIENDLY_INDUSTRIES:
        return "Friendly"
    return "Professional"


def _lang(profile: GenerationProfile) -> str:
    return "es" if profile.is_spanish else "en"


def _address(contact: ContactInfo) -> str:
    return ", ".join(p for p in (contact.address, contact.city, contact.state, contact.country) if p)


def business_profile(profile: GenerationProfile) -> str:
    parts = [f"{profile.business_name}: {profile.industry_label}."]
    if profile.description:
        parts.append(profile.description)
    services = format_services(profile.services)
    if services:
        parts.append(services)
    setup = profile.store_setup
    if profile.has_ecommerce and setup is not None:
        store = f"Online store: {setup.store_name or profile.business_name} ({setup.currency} {setup.currency_symbol})"
        if setup.selected_categories:
            store += f"\nCategories: {', '.join(setup.selected_categories)}"
        parts.append(store)
    return "\n\n".join(parts)


def format_services(services: List[Service]) -> str:
    return "\n".join(f"- {s.name}: {s.description}" if s.description else f"- {s.name}" for s in services)


def format_contact(contact: ContactInfo) -> str:
    lines = []
    if contact.email:
        lines.append(f"Email: {contact.email}")
    if contact.phone:
        lines.append(f"Phone: {contact.phone}")
    if contact.address:
        lines.append(f"Address: {_address(contact)}")
    if contact.business_hours:
        lines.append(f"Hours: {contact.business_hours}")
    social = [
        f"{platform.capitalize()}: {getattr(contact, platform)}"
        for platform in ("facebook", "instagram", "twitter", "linkedin")
        if getattr(contact, platform)
    ]
    lines.extend(social)
    return "\n".join(lines)


def _faqs(profile: GenerationProfile) -> List[Dict[str, str]]:
    lang = _lang(profile)
    rows = GENERAL_FAQS[lang] + (STORE_FAQS[lang] if profile.has_ecommerce else [])
    return [{"id": i, "question": q, "answer": a} for i, q, a in rows]


def appearance(profile: GenerationProfile, colors: Mapping[str, str]) -> Dict[str, Any]:
    es = profile.is_spanish
    emoji = INDUSTRY_EMOJI.get(profile.industry)
    contrast = "#ffffff" if is_dark(colors["primary"]) else "#1f2937"
    return {
        "branding": {
            "logoType": "emoji",
            "logoEmoji": emoji or "💬",
            "logoSize": "md",
            "botAvatarEmoji": emoji or "🤖",
            "showBotAvatar": True,
            "showUserAvatar": False,
            "userAvatarStyle": "initials",
        },
        "colors": {
            "primaryColor": colors["primary"],
            "secondaryColor": colors["secondary"],
            "accentColor": colors["accent"],
            "userBubbleColor": colors["primary"],
            "userTextColor": contrast,
            "botBubbleColor": colors.get("surface") or "#f3f4f6",
            "botTextColor": colors.get("text") or "#1f2937",
            "backgroundColor": "#ffffff",
            "inputBackground": "#ffffff",
            "inputBorder": colors.get("border") or "#e5e7eb",
            "inputText": colors.get("text") or "#1f2937",
            "headerBackground": colors["primary"],
            "headerText": contrast,
        },
        "behavior": {
            "position": "bottom-right",
            "offsetX": 20,
            "offsetY": 20,
            "width": "md",
            "height": "md",
            "autoOpen": False,
            "autoOpenDelay": 5,
            "fullScreenOnMobile": True,
        },
        "messages": {
            "welcomeMessage": "¡Hola! 👋 Soy tu asistente virtual. ¿En qué puedo ayudarte hoy?"
            if es
            else "Hi! 👋 I'm your virtual assistant. How can I help you today?",
            "welcomeMessageEnabled": True,
            "welcomeDelay": 1,
            "inputPlaceholder": "Escribe tu mensaje..." if es else "Type your message...",
            "quickReplies": [{"id": i, "text": t, "emoji": e} for i, t, e in QUICK_REPLIES[_lang(profile)]],
            "showTypingIndicator": True,
        },
        "button": {
            "buttonStyle": "circle",
            "buttonSize": "lg",
            "buttonIcon": "chat",
            "pulseEffect": True,
            "showTooltip": True,
            "tooltipText": "¿Necesitas ayuda?" if es else "Need help?",
        },
        "theme": "auto",
    }


def assistant_config(profile: GenerationProfile, colors: Mapping[str, str]) -> Dict[str, Any]:
    """Chat assistant settings for a new project, seeded from the profile and the site colours."""
    es = profile.is_spanish
    lang = _lang(profile)
    instructions = GENERAL_INSTRUCTIONS[lang]
    if profile.has_ecommerce:
        instructions += STORE_INSTRUCTIONS[lang]
    return {
        "agentName": f"Asistente de {profile.business_name}" if es else f"{profile.business_name} Assistant",
        "tone": determine_tone(profile.industry),
        "languages": "Spanish, English" if es else "English, Spanish",
        "businessProfile": business_profile(profile),
        "productsServices": format_services(profile.services),
        "policiesContact": format_contact(profile.contact_info),
        "specialInstructions": instructions,
        "faqs": _faqs(profile),
        "knowledgeDocuments": [],
        "widgetColor": colors["primary"],
        "isActive": True,
        "leadCaptureEnabled": True,
        "leadCaptureConfig": {
            "enabled": True,
            "preChatForm": False,
            "triggerAfterMessages": 3,
            "requireEmailForAdvancedInfo": True,
            "exitIntentEnabled": True,
            "exitIntentOffer": "¿Te vas? ¡Déjanos tu email y te enviamos información útil!"
            if es
            else "Leaving? Leave us your email and we'll send you useful info!",
            "intentKeywords": [],
            "progressiveProfilingEnabled": True,
        },
        "appearance": appearance(profile, colors),
        "enableLiveVoice": False,
        "voiceName": "Zephyr",
    }
