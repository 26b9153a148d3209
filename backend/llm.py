"""
LLM calls for the meeting notes bot.
Uses OpenAI chat completions for three jobs:
- generate_content: the bot's reply to the user
- infer_meeting_date: which day the user is talking about
- extract_meeting_from_history: a complete meeting (subject, date, items) to save
"""
import json
import re
from dataclasses import dataclass
from datetime import date
from typing import Any, Generic, List, Optional, TypeVar
from openai import OpenAI

import config
import dates
from models import ChatRole, ChatTurn, ExtractedMeeting

# Turns sent to the model as context
MAX_CONTEXT_MESSAGES = config.HISTORY_WINDOW

EMPTY_GENERATION_REPLY = "Não consegui gerar uma resposta."

_client: Optional[OpenAI] = None


def get_client() -> OpenAI:
    """OpenAI client with an explicit timeout and a single retry on transient errors."""
    global _client
    if _client is None:
        _client = OpenAI(
            api_key=config.OPENAI_API_KEY,
            timeout=config.LLM_TIMEOUT_SECONDS,
            max_retries=config.LLM_MAX_RETRIES,
        )
    return _client


T = TypeVar('T')


@dataclass
class LLMResult(Generic[T]):
    """Value of a best-effort LLM call; degraded=True means `value` is the fallback default."""
    value: T
    degraded: bool = False
    error: Optional[str] = None

    @classmethod
    def ok(cls, value: T) -> 'LLMResult[T]':
        return cls(value=value)

    @classmethod
    def fallback(cls, value: T, error: Any) -> 'LLMResult[T]':
        return cls(value=value, degraded=True, error=str(error))


DEFAULT_SYSTEM_PROMPT = """Você é um bot que funciona como a agenda pessoal do usuário. Sua função é ajudar a organizar e enviar mensagens com:

- **Anotações de reunião**: registre pontos discutidos, decisões, action items e participantes.
- **Lembretes**: datas, horários e o que não esquecer.
- **Tarefas**: coisas a fazer, com prioridade ou prazo quando informado.
- **Compromissos**: eventos, reuniões futuras, compromissos agendados.
- **Ideias e notas rápidas**: anotações soltas para depois.

Comportamento esperado:
1. **Reuniões – preenchimento obrigatório**: quando o usuário falar de uma reunião (anotações, pontos discutidos, ata), você DEVE garantir que temos:
   - **Assunto**: nome ou tema da reunião (ex: "Sprint Planning", "1:1 com João"). Se não tiver, pergunte: "Qual o assunto ou nome dessa reunião?"
   - **Data (sempre em pergunta separada)**: você SEMPRE deve perguntar a data da reunião em uma mensagem dedicada. Nunca assuma a data sem perguntar. Se o usuário já tiver mencionado uma data no texto (ex.: "reunião de ontem", "dia 28", "hoje"), confirme em vez de perguntar do zero: "Você mencionou [data/dia] no texto. É essa a data da reunião?" Se não tiver nenhuma data no texto, pergunte: "Qual a data (e horário, se souber) dessa reunião?"
   - **Itens**: os pontos, decisões ou anotações da reunião. Se o usuário só der assunto e data, pergunte: "Quais os principais pontos ou itens que quer registrar dessa reunião?"
   Faça uma pergunta de cada vez, de forma natural, até ter assunto, data confirmada e pelo menos um item. Só então confirme que pode salvar.
2. **Resumos de reunião**: quando já houver conteúdo, apresente um resumo claro (o que foi decidido, próximos passos, responsáveis).
3. **Perguntas de esclarecimento**: faça perguntas curtas e objetivas quando faltar informação importante (datas, responsáveis, prazos, contexto).
4. **Organização**: sugira categorizar o conteúdo (reunião, lembrete, tarefa, etc.) quando fizer sentido.
5. **Tom**: seja conciso, útil e em português. Evite respostas longas demais; priorize clareza e ação.

6. **Reuniões já salvas**: quando te passarem "[REUNIÕES RECENTES NO BANCO]" abaixo, use isso: se o usuário mandar um assunto ou falar de uma reunião, verifique se há alguma reunião listada com assunto parecido (ou no mesmo dia). Se houver, pergunte exatamente neste estilo: "Não está tratando da reunião [assunto], do dia [data]? Quer atualizar? O que já temos de informação é isso:\n[cole aqui o texto 'O que já temos' da reunião]." Só depois de perguntar isso (ou se não houver reunião parecida) prossiga com o fluxo normal (perguntar data, itens, etc.)."""


DATE_INFER_SYSTEM = """Você extrai a DATA de uma reunião mencionada na conversa. Responda APENAS com uma data no formato YYYY-MM-DD, ou exatamente a palavra null se não houver data mencionada ou inferível.
Use a "data de hoje" fornecida para interpretar "hoje", "ontem", "amanhã" e para o ANO: para "dia 28", "28/02", "27/02", etc., use SEMPRE o ano da "data de hoje" (ex.: se data de hoje for 2026-02-27, então 27/02 = 2026-02-27)."""


EXTRACTOR_SYSTEM_PROMPT = """Você é um extrator de dados. Analise a conversa e identifique se há uma reunião COMPLETA para salvar.
Reunião completa = assunto + data + pelo menos um item/ponto da reunião.
Responda APENAS com um único JSON válido, sem markdown e sem texto antes ou depois, neste formato exato:
{"has_complete_meeting": true ou false, "subject": "string ou null", "date": "ISO ou YYYY-MM-DD ou null", "full_text": "string", "items": ["string", ...]}
- subject: assunto/nome da reunião.
- date: use formato ISO (ex: 2025-02-28T14:00:00) ou YYYY-MM-DD. IMPORTANTE: quando a conversa mencionar só dia/mês (ex: 27/02, dia 28), use SEMPRE o ano da "data de hoje" fornecida na mensagem do usuário abaixo.
- full_text: OBRIGATÓRIO quando has_complete_meeting for true. Deve conter TODO o conteúdo da reunião em um único texto: todas as falas do usuário sobre a reunião compiladas, pontos discutidos, decisões, anotações, action items - texto completo e fiel, sem resumir nem cortar. Use quebras de linha (\\n) para separar blocos se fizer sentido.
- items: lista de strings, cada uma é um ponto/item/anotação da reunião (para listagem estruturada). Se não houver, use [].
- has_complete_meeting: true somente se tiver assunto, data e pelo menos um item."""


def format_turns(turns: List[ChatTurn]) -> str:
    return "\n".join(
        f"{'Usuário' if turn.role == ChatRole.user else 'Bot'}: {turn.text}" for turn in turns
    )


def build_messages(user_message: str, system_prompt: str, history: List[ChatTurn]) -> List[dict]:
    """System prompt, then the last MAX_CONTEXT_MESSAGES turns, then the new message."""
    messages = [{"role": "system", "content": system_prompt}]
    for turn in history[-MAX_CONTEXT_MESSAGES:]:
        role = "user" if turn.role == ChatRole.user else "assistant"
        messages.append({"role": role, "content": turn.text})
    messages.append({"role": "user", "content": user_message.strip() or "."})
    return messages


def generate_content(
    user_message: str,
    system_prompt: str = DEFAULT_SYSTEM_PROMPT,
    history: Optional[List[ChatTurn]] = None,
    json_mode: bool = False,
) -> str:
    """
    Generate a reply. Provider/transport errors propagate to the caller.
    """
    kwargs = {}
    if json_mode:
        kwargs['response_format'] = {"type": "json_object"}

    response = get_client().chat.completions.create(
        model=config.OPENAI_MODEL,
        messages=build_messages(user_message, system_prompt, history or []),
        temperature=0.13,
        top_p=0.55,
        max_completion_tokens=4000,
        **kwargs,
    )
    text = (response.choices[0].message.content or '').strip()
    return text or EMPTY_GENERATION_REPLY


def parse_inferred_date(raw: str) -> Optional[str]:
    """Model answer -> YYYY-MM-DD or None."""
    trimmed = raw.strip().lower().strip('"\'')
    if trimmed in ('', 'null'):
        return None

    match = re.search(r'\d{4}-\d{2}-\d{2}', trimmed)
    if match:
        return match.group(0)

    try:
        return dates.to_storage_date(trimmed).date().isoformat()
    except ValueError:
        return None


def infer_meeting_date(
    user_message: str,
    history: List[ChatTurn],
    today: Optional[date] = None,
) -> LLMResult[Optional[str]]:
    """Date (YYYY-MM-DD) of the meeting being discussed ("hoje", "ontem", "28/02"...), or None."""
    today_str = (today or dates.today()).isoformat()
    recent = list(history[-config.DATE_INFERENCE_TURNS:])
    recent.append(ChatTurn(role=ChatRole.user, text=user_message))

    user_prompt = (
        f"Data de hoje (para referência): {today_str}\n\n"
        f"Conversa:\n{format_turns(recent)}\n\n"
        "Qual a data da reunião que está sendo falada? Responda só YYYY-MM-DD ou null."
    )

    try:
        raw = generate_content(user_prompt, system_prompt=DATE_INFER_SYSTEM, history=[])
        return LLMResult.ok(parse_inferred_date(raw))
    except Exception as e:
        print(f"[llm] Error inferring meeting date: {e}")
        return LLMResult.fallback(None, e)


def parse_json_object(raw: str) -> dict:
    """
    Parse a JSON object out of model output, tolerating text or ``` fences
    around it. Raises ValueError if nothing parseable is found.
    """
    try:
        result = json.loads(raw)
    except json.JSONDecodeError:
        start, end = raw.find('{'), raw.rfind('}')
        if start == -1 or end < start:
            raise ValueError("no JSON object in model output")
        result = json.loads(raw[start:end + 1])

    if not isinstance(result, dict):
        raise ValueError("model output is not a JSON object")
    return result


def extract_meeting_from_history(
    history: List[ChatTurn],
    today: Optional[date] = None,
) -> LLMResult[ExtractedMeeting]:
    """
    Look at the conversation and pull out a complete meeting, if there is one.
    Malformed model output degrades to has_complete_meeting=False.
    """
    if not history:
        return LLMResult.ok(ExtractedMeeting())

    today_str = (today or dates.today()).isoformat()
    user_prompt = (
        f"Data de hoje (use este ano para qualquer data que a conversa não especificar): {today_str}\n\n"
        f"Conversa:\n{format_turns(history[-MAX_CONTEXT_MESSAGES:])}\n\n"
        "Com base na conversa acima, extraia os dados da reunião. "
        "Responda APENAS com o JSON (sem ```json e sem explicação)."
    )

    try:
        raw = generate_content(user_prompt, system_prompt=EXTRACTOR_SYSTEM_PROMPT, history=[], json_mode=True)
        result = parse_json_object(raw)

        items = result.get('items')
        full_text = result.get('full_text')
        return LLMResult.ok(ExtractedMeeting(
            has_complete_meeting=bool(result.get('has_complete_meeting')),
            subject=result.get('subject') or None,
            date=result.get('date') or None,
            full_text=full_text if isinstance(full_text, str) else None,
            items=[x for x in items if isinstance(x, str)] if isinstance(items, list) else [],
        ))
    except Exception as e:
        print(f"[llm] Error extracting meeting: {e}")
        return LLMResult.fallback(ExtractedMeeting(), e)
