"""Prompt construction for chat replies."""

from chat_voice_bot.interfaces.events import ChatEvent

DEFAULT_PERSONALITY = (
    "You are a witty, youthful, and high-energy Twitch stream companion named Aura. "
    "Keep your responses short (under 15 words), trendy, and interactive. "
    "Use a youthful tone and react with excitement to the chat messages."
)

PROMPT_TEMPLATE = (
    'Twitch message from {display_name}: "{message}". '
    "Respond as Aura (energetic, short, max 10 words). "
    "Personality: {personality}."
)


def build_prompt(event: ChatEvent, personality: str = DEFAULT_PERSONALITY) -> str:
    """Build the text-generation prompt for one chat message.

    Args:
        event: The chat message being answered.
        personality: Free-form personality description.

    Returns:
        The prompt string sent to text providers.
    """
    return PROMPT_TEMPLATE.format(
        display_name=event.display_name,
        message=event.message,
        personality=personality.strip().rstrip("."),
    )
