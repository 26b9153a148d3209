"""
Reply flow for one inbound Telegram message.

RECEIVED -> CONTEXT_BUILT -> REPLIED -> EXTRACTED -> SAVED | SKIPPED

1. Empty text gets a fixed prompt, no LLM or database calls.
2. Infer the meeting date, list meetings around it, look for a subject match.
3. A match forces the reply to open with "is this about meeting X?".
4. Generate the reply (a failure here ends the exchange with an apology).
5. Record the exchange in the chat history.
6. Ask the extractor whether the conversation now describes a complete meeting.
7. Save it (meeting + items) unless this chat already saved the same subject/date.

Context building, extraction and saving are best-effort: their failures are
logged and the user still gets the generated reply.
"""
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import List, Optional

import config
import database
import dates
import llm
import matcher
from models import ChatTurn, ExtractedMeeting, Meeting
from state import ChatState, create_chat_state, saved_meeting_key

EMPTY_MESSAGE_REPLY = "Envie uma mensagem de texto para eu poder te ajudar."
GENERATION_FAILED_REPLY = "Desculpe, não consegui processar sua mensagem agora. Tente novamente em instantes."
SAVED_CONFIRMATION_SUFFIX = "\n\n✅ Reunião salva no banco de dados."

NO_CONTENT_PLACEHOLDER = "(sem conteúdo ainda)"
CONTEXT_PREVIEW_CHARS = 600
NEARBY_MEETINGS_HEADER = "[REUNIÕES RECENTES NO BANCO]"


class ExchangeState(str, Enum):
    received = 'received'
    context_built = 'context_built'
    replied = 'replied'
    extracted = 'extracted'
    saved = 'saved'
    skipped = 'skipped'
    # short-circuits
    rejected = 'rejected'
    failed = 'failed'


@dataclass
class MeetingContext:
    target_date: date
    nearby: List[Meeting] = field(default_factory=list)
    match: Optional[Meeting] = None
    degraded: bool = False


@dataclass
class ExchangeResult:
    reply: str
    state: ExchangeState
    context: Optional[MeetingContext] = None
    saved_meeting_id: Optional[str] = None
    extraction_degraded: bool = False


# Process-wide chat state (history + saved-meeting ledger)
chat_state = create_chat_state()


def meeting_content(meeting: Meeting) -> str:
    return (meeting.full_text or NO_CONTENT_PLACEHOLDER).strip()


def format_meeting_for_context(meeting: Meeting) -> str:
    content = meeting_content(meeting)
    if len(content) > CONTEXT_PREVIEW_CHARS:
        content = content[:CONTEXT_PREVIEW_CHARS] + "…"
    date_str = dates.format_meeting_date(meeting.date)
    return f'• Assunto: "{meeting.subject}" | Dia: {date_str}\n  O que já temos: {content}'


def confirmation_question(meeting: Meeting) -> str:
    return (
        f"Não está tratando da reunião {meeting.subject}, do dia {dates.format_meeting_date(meeting.date)}? "
        f"Quer atualizar? O que já temos de informação é isso:\n{meeting_content(meeting)}"
    )


def forced_instruction(meeting: Meeting) -> str:
    return (
        "[INSTRUÇÃO OBRIGATÓRIA PARA ESTA RESPOSTA]\n"
        "A mensagem do usuário corresponde a uma reunião já salva no banco. "
        "Sua resposta DEVE começar exatamente com a pergunta abaixo, sem nenhum texto antes dela:\n"
        f"{confirmation_question(meeting)}\n"
        "Depois da pergunta, aguarde o usuário confirmar antes de seguir com o fluxo normal."
    )


def build_system_prompt(context: Optional[MeetingContext]) -> str:
    parts = []
    if context and context.match:
        parts.append(forced_instruction(context.match))
    parts.append(llm.DEFAULT_SYSTEM_PROMPT)
    if context and context.nearby:
        listing = "\n".join(format_meeting_for_context(m) for m in context.nearby)
        parts.append(f"{NEARBY_MEETINGS_HEADER}\n{listing}")
    return "\n\n".join(parts)


def build_context(message: str, history: List[ChatTurn], today: Optional[date] = None) -> MeetingContext:
    """Target date (inferred or today), meetings around it and the first subject match."""
    today = today or dates.today()
    inferred = llm.infer_meeting_date(message, history, today=today)

    target_date = today
    if inferred.value:
        try:
            target_date = date.fromisoformat(inferred.value)
        except ValueError:
            print(f"[bot] Ignoring unparseable inferred date: {inferred.value}")

    context = MeetingContext(target_date=target_date, degraded=inferred.degraded)
    try:
        context.nearby = database.list_meetings_near_date(target_date, config.NEARBY_WINDOW_DAYS)
    except Exception as e:
        print(f"[bot] Error listing meetings near {target_date}: {e}")
        context.degraded = True
        return context

    context.match = matcher.find_match(message, context.nearby)
    return context


def save_extracted_meeting(state: ChatState, chat_id: int, extracted: ExtractedMeeting) -> Optional[str]:
    """
    Persist a complete meeting once per (subject, date) per chat.
    Returns the new meeting id, or None when skipped or on failure.
    """
    subject = extracted.subject.strip()
    normalized_date = dates.normalize_year(extracted.date.strip())
    key = saved_meeting_key(subject, normalized_date)

    try:
        if state.ledger.has(chat_id, key):
            print(f"[bot] Meeting {key} already saved for chat {chat_id}")
            return None

        items = [item.strip() for item in extracted.items if item.strip()]
        full_text = (extracted.full_text or '').strip() or "\n\n".join(items)

        meeting_id = database.create_meeting(subject, normalized_date, full_text)
        for order, item in enumerate(items):
            database.add_meeting_item(meeting_id, item, order)
        state.ledger.mark(chat_id, key)
        return meeting_id
    except Exception as e:
        print(f"[bot] Error saving meeting {key} for chat {chat_id}: {e}")
        return None


def handle_message(chat_id: int, text: Optional[str], state: Optional[ChatState] = None) -> ExchangeResult:
    """Run one exchange and return the text to send back."""
    message = (text or '').strip()
    if not message:
        return ExchangeResult(reply=EMPTY_MESSAGE_REPLY, state=ExchangeState.rejected)

    state = state or chat_state
    with state.chat_lock(chat_id):
        history = state.history.get(chat_id)
        context = build_context(message, history)

        try:
            reply = llm.generate_content(
                message,
                system_prompt=build_system_prompt(context),
                history=history[-config.HISTORY_WINDOW:],
            )
        except Exception as e:
            print(f"[bot] Error generating reply for chat {chat_id}: {e}")
            return ExchangeResult(reply=GENERATION_FAILED_REPLY, state=ExchangeState.failed, context=context)

        try:
            state.history.append(chat_id, message, reply)
        except Exception as e:
            print(f"[bot] Error recording history for chat {chat_id}: {e}")

        extraction = llm.extract_meeting_from_history(state.history.get(chat_id)[-config.HISTORY_WINDOW:])
        result = ExchangeResult(
            reply=reply,
            state=ExchangeState.skipped,
            context=context,
            extraction_degraded=extraction.degraded,
        )
        if not extraction.value.is_complete:
            return result

        meeting_id = save_extracted_meeting(state, chat_id, extraction.value)
        if meeting_id:
            result.state = ExchangeState.saved
            result.saved_meeting_id = meeting_id
            result.reply = reply + SAVED_CONFIRMATION_SUFFIX
        return result
