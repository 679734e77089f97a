"""
Prompt Builder - persona directive and per-request context for Luna

The system prompt is constructed in two layers:
1. Persona - fixed voice, format and topic restrictions
2. Context - who is asking (and, in the partner chat, about whom)
"""

from dataclasses import dataclass
from typing import List, Dict, Optional

from luna.db.models import DiaryEntry, Message, Partner, User

ASTROLOGER_SYSTEM_PROMPT = """You are Luna, an experienced and welcoming astrologer. You offer personalized astrological guidance with empathy and wisdom.

Your communication style:
- Warm and empathetic
- Simple, accessible language
- Connect astrological insights with practical, everyday situations
- Keep answers under 300 words
- Always finish with a reflective question or a practical suggestion

You do NOT answer about:
- Medical or health issues
- Legal issues
- Specific financial investments

When a question touches those topics, gently guide the person to look for a qualified professional.

Answer format:
1. Brief emotional welcome
2. Connection with the relevant astrological aspects
3. Practical insight or guidance
4. Reflective question or suggestion for the day"""

PARTNER_DIRECTIVE = """This conversation is about the user's romantic relationship. Focus on compatibility, communication and emotional dynamics between the two people, never on predicting the partner's private thoughts."""

NOT_INFORMED = "Not informed"


@dataclass
class PromptContext:
    """Snapshot of the people a prompt is about, detached from the DB session"""
    name: str
    sun_sign: Optional[str]
    birth_city: str
    plan: str
    partner_name: Optional[str] = None
    partner_sun_sign: Optional[str] = None

    @classmethod
    def from_models(cls, user: User, partner: Optional[Partner] = None) -> "PromptContext":
        return cls(
            name=user.full_name,
            sun_sign=user.sun_sign,
            birth_city=user.birth_city,
            plan=user.plan,
            partner_name=partner.name if partner else None,
            partner_sun_sign=partner.sun_sign if partner else None,
        )

    @property
    def is_partner(self) -> bool:
        return self.partner_name is not None


def build_system_prompt(context: PromptContext) -> str:
    """Fixed persona, plus the relationship directive for the partner chat."""
    if context.is_partner:
        return f"{ASTROLOGER_SYSTEM_PROMPT}\n\n{PARTNER_DIRECTIVE}"
    return ASTROLOGER_SYSTEM_PROMPT


def build_user_context(context: PromptContext) -> str:
    """Per-request context block interpolated after the persona."""
    lines = [
        "User information:",
        f"- Name: {context.name}",
        f"- Sun sign: {context.sun_sign or NOT_INFORMED}",
        f"- Birth city: {context.birth_city}",
        f"- Plan: {context.plan}",
    ]
    if context.is_partner:
        lines += [
            "",
            "Partner information:",
            f"- Name: {context.partner_name}",
            f"- Sun sign: {context.partner_sun_sign or NOT_INFORMED}",
        ]
    return "\n".join(lines)


def history_as_chat(messages: List[Message]) -> List[Dict[str, str]]:
    """Stored messages as provider chat messages, order preserved."""
    return [{"role": m.role, "content": m.content} for m in messages]


def build_daily_audio_prompt(user: User, recent: List[Message]) -> str:
    """Script request for the morning message (spoken, 1-2 minutes)."""
    first_name = user.full_name.split(" ")[0]
    recent_context = "\n".join(f"{m.role}: {m.content}" for m in recent)

    prompt = f"""You are an astrologer called Luna. Write a warm, personalized morning message for {first_name}, whose sun sign is {user.sun_sign or NOT_INFORMED}.

The message must:
- Last between 1 and 2 minutes when spoken
- Start with a warm greeting using the person's name
- Mention something relevant about the sign and the current astrological moment
- Give one practical piece of guidance for the day
- End with words of encouragement
"""
    if recent_context:
        prompt += f"\nContext from recent conversations:\n{recent_context}\n"
    prompt += "\nWrite only the text to be spoken, without markup or stage directions."
    return prompt


def build_diary_reflection_prompt(
    user: User,
    entry: DiaryEntry,
    earlier: List[DiaryEntry],
    pattern: Optional[str] = None,
) -> str:
    """Reply request for one mood journal entry."""
    first_name = user.full_name.split(" ")[0]
    prompt = f"""{ASTROLOGER_SYSTEM_PROMPT}

{first_name} (sun sign: {user.sun_sign or NOT_INFORMED}) wrote in their mood journal.
Mood: {entry.mood or NOT_INFORMED}
Entry: {entry.content}
"""
    if earlier:
        previous = "\n".join(f"- [{e.mood or NOT_INFORMED}] {e.content}" for e in earlier)
        prompt += f"\nEarlier entries, newest first:\n{previous}\n"
    if pattern:
        prompt += f"\nRecurring pattern: {pattern}. Acknowledge it gently.\n"
    prompt += "\nReply to the entry directly, in under 150 words."
    return prompt
