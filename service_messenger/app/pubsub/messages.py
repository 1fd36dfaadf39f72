"""
Sender tagging for channel messages.
"""

TAG_SEPARATOR = ": "


def sender_tag(user_id: str) -> str:
    # The separator stops "alice" from matching messages sent by "alice2"
    return f"{user_id}{TAG_SEPARATOR}"


def tag_message(user_id: str, text: str) -> str:
    """Prefix ``text`` with its sender."""
    return sender_tag(user_id) + text


def is_self_authored(user_id: str, message: str) -> bool:
    """True when ``message`` carries ``user_id``'s own tag."""
    return message.startswith(sender_tag(user_id))
